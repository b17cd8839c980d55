import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Optional

DEFAULT_MAX_LINES = 50
MAX_TYPE_SAMPLES = 2
MAX_FUNCTION_SAMPLES = 3

HASH_COMMENT_EXTENSIONS = {"py", "rb", "sh", "bash", "zsh", "yaml", "yml", "toml", "pl", "r"}

JS_FUNCTION_PATTERN = re.compile(
    r"^(export\s+)?(default\s+)?(async\s+)?function[\s*]"
    r"|^(export\s+)?(const|let|var)\s+\w+\s*=\s*(async\s+)?(function\b|\(.*\)\s*=>|\w+\s*=>)"
)
JS_TYPE_PATTERN = re.compile(r"^(export\s+)?(default\s+)?(abstract\s+)?(class|interface)\s+\w+")


@dataclass
class _Structure:
    imports: List[str] = field(default_factory=list)
    types: List[List[str]] = field(default_factory=list)
    functions: List[List[str]] = field(default_factory=list)
    type_label: str = "struct"


def _brace_block(lines: List[str], start: int) -> List[str]:
    """Collects lines from `start` until the braces opened there are balanced."""
    depth = 0
    opened = False
    block = []
    for line in lines[start:]:
        block.append(line)
        depth += line.count("{") - line.count("}")
        if "{" in line:
            opened = True
        if opened and depth <= 0:
            break
        if not opened and len(block) > 3:
            # declaration without a body, e.g. a forward declaration
            break
    return block


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def _indent_block(lines: List[str], start: int) -> List[str]:
    """Collects an indentation-delimited block (Python def/class)."""
    base = _indent_of(lines[start])
    block = [lines[start]]
    for line in lines[start + 1:]:
        if line.strip() and _indent_of(line) <= base:
            break
        block.append(line)
    while block and not block[-1].strip():
        block.pop()
    return block


def _scan_go(lines: List[str]) -> _Structure:
    found = _Structure(type_label="struct")
    i = 0
    while i < len(lines):
        stripped = lines[i].strip()
        if stripped.startswith("import ("):
            j = i
            while j < len(lines):
                found.imports.append(lines[j])
                if lines[j].strip() == ")":
                    break
                j += 1
            i = j + 1
            continue
        if stripped.startswith("import "):
            found.imports.append(lines[i])
        elif stripped.startswith("type ") and "struct {" in stripped:
            block = _brace_block(lines, i)
            found.types.append(block)
            i += len(block)
            continue
        elif stripped.startswith("func "):
            block = _brace_block(lines, i)
            found.functions.append(block)
            i += len(block)
            continue
        i += 1
    return found


def _scan_js(lines: List[str]) -> _Structure:
    found = _Structure(type_label="class")
    i = 0
    while i < len(lines):
        stripped = lines[i].strip()
        if stripped.startswith("import ") or re.match(r"^(const|let|var)\s+.+=\s*require\(", stripped):
            found.imports.append(lines[i])
        elif JS_TYPE_PATTERN.match(stripped):
            block = _brace_block(lines, i)
            found.types.append(block)
            i += len(block)
            continue
        elif JS_FUNCTION_PATTERN.match(stripped) and not stripped.startswith("//"):
            block = _brace_block(lines, i)
            found.functions.append(block)
            i += len(block)
            continue
        i += 1
    return found


def _scan_python(lines: List[str]) -> _Structure:
    found = _Structure(type_label="class")
    i = 0
    while i < len(lines):
        line = lines[i]
        stripped = line.strip()
        top_level = _indent_of(line) == 0
        if top_level and (stripped.startswith("import ") or stripped.startswith("from ")):
            found.imports.append(line)
        elif top_level and stripped.startswith("class "):
            block = _indent_block(lines, i)
            found.types.append(block)
            i += len(block)
            continue
        elif stripped.startswith("def ") or stripped.startswith("async def "):
            block = _indent_block(lines, i)
            found.functions.append(block)
            i += len(block)
            continue
        i += 1
    return found


SCANNERS: Dict[str, Callable[[List[str]], _Structure]] = {
    "go": _scan_go,
    "js": _scan_js,
    "jsx": _scan_js,
    "ts": _scan_js,
    "tsx": _scan_js,
    "py": _scan_python,
}


def _extract_structure(found: _Structure, max_lines: int, marker: str) -> Optional[str]:
    if not found.types and not found.functions:
        return None

    result = [f"{marker} NOTE: Large file - showing extracted portions only", ""]

    if found.imports and len(found.imports) < max_lines // 4:
        result.append(f"{marker} Package imports")
        result.extend(found.imports)
        result.append("")

    # section header plus the "... and N more" note and its blank line
    section_overhead = 3
    if found.functions:
        section_overhead += 2

    types = _fit_blocks(found.types[:MAX_TYPE_SAMPLES], max_lines - len(result) - section_overhead)
    if types:
        result.append(f"{marker} Sample {found.type_label} definitions")
        for block in types:
            result.extend(block)
            result.append("")
    if len(found.types) > len(types):
        result.append(f"{marker} ... and {len(found.types) - len(types)} more {found.type_label} definitions")
        result.append("")

    # shortest first, so more samples fit the budget
    candidates = sorted(found.functions, key=len)[:MAX_FUNCTION_SAMPLES]
    functions = _fit_blocks(candidates, max_lines - len(result) - 2)
    if functions:
        result.append(f"{marker} Sample function definitions")
        for block in functions:
            result.extend(block)
            result.append("")
    if len(found.functions) > len(functions):
        result.append(f"{marker} ... and {len(found.functions) - len(functions)} more functions")

    if not types and not functions:
        return None
    return "\n".join(result)


def _fit_blocks(blocks: List[List[str]], budget: int) -> List[List[str]]:
    """The leading blocks that fit in `budget` lines, one blank line after each."""
    picked = []
    used = 0
    for block in blocks:
        if used + len(block) + 1 > budget:
            break
        picked.append(block)
        used += len(block) + 1
    return picked


def sample_content(lines: List[str], max_lines: int = DEFAULT_MAX_LINES, marker: str = "//") -> str:
    """Head quarter, middle half and tail of a file, each under a labelled comment."""
    total = len(lines)
    head = max_lines // 4
    middle = max_lines // 2
    tail = max_lines - head - middle

    result = [f"{marker} NOTE: Large file - showing sample only", ""]

    result.append(f"{marker} Beginning of file:")
    result.extend(lines[:head])
    result.append("")

    if total > head + tail + 10:
        start = total // 2 - middle // 2
        result.append(f"{marker} Middle portion of file:")
        result.extend(lines[start:start + middle])
        result.append("")

    if total > head + 10:
        result.append(f"{marker} End of file:")
        result.extend(lines[max(total - tail, 0):])

    return "\n".join(result)


def comment_marker(path: str) -> str:
    return "#" if file_extension(path) in HASH_COMMENT_EXTENSIONS else "//"


def file_extension(path: str) -> str:
    return PurePosixPath(path).suffix.lstrip(".").lower()


def trim_content(content: str, path: str, max_lines: int = DEFAULT_MAX_LINES) -> str:
    """
    Returns a bounded excerpt of a file suitable for embedding in a prompt.

    Content within `max_lines` is returned unchanged. Go, JavaScript/TypeScript
    and Python files get a structural excerpt (imports, type declarations and
    the shortest functions); everything else, or a file with no recognizable
    structure, gets a head/middle/tail sample.
    """
    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content

    marker = comment_marker(path)
    scanner = SCANNERS.get(file_extension(path))
    if scanner is not None:
        extracted = _extract_structure(scanner(lines), max_lines, marker)
        if extracted is not None:
            return extracted

    return sample_content(lines, max_lines, marker)
