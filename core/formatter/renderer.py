import datetime
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError

from utils.errors import FormatterError

TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateRenderer:
    """
    Renders the packaged Jinja2 templates (prompts, issue skeleton, hook
    scripts) and ad-hoc template strings such as personality prompts.
    """

    def __init__(self, template_dir: Optional[str] = None):
        self.template_dir = template_dir or str(TEMPLATE_DIR)
        try:
            self.env = Environment(
                loader=FileSystemLoader(self.template_dir),
                trim_blocks=True,
                lstrip_blocks=True,
                keep_trailing_newline=True,
            )
        except Exception as e:
            raise FormatterError(f"Failed to initialize Jinja2 environment: {e}") from e
        self.env.globals["now"] = datetime.datetime.now

    def render(self, template_name: str, **values: Any) -> str:
        try:
            template = self.env.get_template(template_name)
            return template.render(**values)
        except TemplateError as e:
            raise FormatterError(f"Failed to render template {template_name}: {e}") from e

    def render_string(self, source: str, **values: Any) -> str:
        """Renders a template given as text. Unknown variables render empty."""
        try:
            return self.env.from_string(source).render(**values)
        except TemplateError as e:
            raise FormatterError(f"Failed to render template string: {e}") from e
