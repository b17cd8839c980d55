import datetime
import random
import unittest

import pytest

from config.models import Config, LLMConfig
from config.personalities import FALLBACK_PERSONALITY
from core.contracts.models import CommitContext, DiffAnalysis, Issue, RepoInfo
from core.formatter.extractor import AI_COMMENT_FOOTER, FAILED_COMMENT_NOTE
from core.moai import FACES, FIX_FEEDBACK, LATE_NIGHT_FEEDBACK, SHORT_MESSAGE_FEEDBACK, WIP_FEEDBACK, local_feedback, random_face
from core.pipeline import LLMFeedbackEngine, LocalFeedbackEngine, create_feedback_engine, local_commit_suggestion
from utils.errors import ProviderError

REPO = RepoInfo(owner="octo", name="widgets")
ISSUE = Issue(number=12, title="Crash on save", body="Saving crashes", state="open")


class FakeCredentials:
    def get(self, service_name):
        return None


class ScriptedProvider:
    """Returns a canned response, or raises it when it is an exception."""

    def __init__(self, response):
        self.response = response

    def complete(self, system_prompt, user_prompt, *, temperature, max_tokens, model=None):
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _engine(response) -> LLMFeedbackEngine:
    return LLMFeedbackEngine(provider=ScriptedProvider(response), personality=FALLBACK_PERSONALITY)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("NOIDEA_API_KEY", "OPENAI_API_KEY", "XAI_API_KEY", "DEEPSEEK_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_llm_engine_close_releases_provider(mocker):
    provider = mocker.MagicMock()
    LLMFeedbackEngine(provider=provider, personality=FALLBACK_PERSONALITY).close()
    provider.close.assert_called_once()

    # providers without a close method are left alone
    _engine("ok").close()


def test_local_engine_when_ai_disabled():
    engine = create_feedback_engine(Config())
    assert isinstance(engine, LocalFeedbackEngine)


def test_local_engine_when_key_missing(clean_env):
    config = Config(llm=LLMConfig(enabled=True, provider="openai"))
    engine = create_feedback_engine(config, credentials=FakeCredentials())
    assert isinstance(engine, LocalFeedbackEngine)


def test_llm_engine_with_key(clean_env):
    config = Config(llm=LLMConfig(enabled=False, provider="xai", api_key="xai-test"))
    engine = create_feedback_engine(
        config,
        personality_name="supportive_mentor",
        use_ai=True,
        credentials=FakeCredentials(),
        username="ada",
    )

    assert isinstance(engine, LLMFeedbackEngine)
    assert engine.personality.name == "supportive_mentor"
    assert engine.username == "ada"
    assert engine.provider.model == "grok-2-1212"


def test_unknown_personality_uses_default(clean_env):
    config = Config(llm=LLMConfig(enabled=True, api_key="sk-test"))
    engine = create_feedback_engine(config, personality_name="does_not_exist", credentials=FakeCredentials())
    assert engine.personality.name == "snarky_reviewer"


class TestLLMFeedbackEngine(unittest.TestCase):

    def test_generate_feedback(self):
        engine = _engine("  Nice commit.  \n")
        self.assertEqual(engine.generate_feedback(CommitContext(message="feat: x")), "Nice commit.")

    def test_generate_feedback_propagates_provider_errors(self):
        engine = _engine(ProviderError("boom"))
        with self.assertRaises(ProviderError):
            engine.generate_feedback(CommitContext(message="feat: x"))

    def test_suggest_commit_message_extracts_line(self):
        engine = _engine('Suggested:\n"fix: handle empty input"')
        message = engine.suggest_commit_message(CommitContext(diff=""))
        self.assertEqual(message, "fix: handle empty input")

    def test_draft_issue(self):
        engine = _engine("Save crashes\n---\n## Description\nDetails")
        title, body = engine.draft_issue("saving crashes", REPO)
        self.assertEqual(title, "Save crashes")
        self.assertTrue(body.startswith("## Description\nDetails"))

    def test_draft_issue_falls_back_on_provider_error(self):
        engine = _engine(ProviderError("offline"))
        title, body = engine.draft_issue("Saving crashes the app", REPO)
        self.assertEqual(title, "Saving crashes the app")
        self.assertIn("## Steps to Reproduce", body)

    def test_draft_comment(self):
        self.assertEqual(_engine("Fixed in 1.2").draft_comment("fixed", ISSUE), "Fixed in 1.2" + AI_COMMENT_FOOTER)
        self.assertEqual(_engine("   ").draft_comment("fixed", ISSUE), "fixed" + FAILED_COMMENT_NOTE)
        self.assertEqual(_engine(ProviderError("x")).draft_comment("fixed", ISSUE), "fixed" + FAILED_COMMENT_NOTE)


class TestLocalFeedback(unittest.TestCase):

    def setUp(self):
        self.rng = random.Random(42)
        self.noon = datetime.datetime(2024, 3, 1, 12, 0)

    def test_pools(self):
        self.assertIn(local_feedback("wip: parser", self.noon, self.rng), WIP_FEEDBACK)
        self.assertIn(local_feedback("typo", self.noon, self.rng), SHORT_MESSAGE_FEEDBACK)
        self.assertIn(local_feedback("fix: null pointer in loader", self.noon, self.rng), FIX_FEEDBACK)
        late = datetime.datetime(2024, 3, 1, 2, 30)
        self.assertIn(local_feedback("refactor: split the loader", late, self.rng), LATE_NIGHT_FEEDBACK)

    def test_local_engine(self):
        engine = LocalFeedbackEngine(rng=self.rng)
        feedback = engine.generate_feedback(CommitContext(message="wip", timestamp=self.noon))
        self.assertIn(feedback, WIP_FEEDBACK)

    def test_random_face(self):
        self.assertIn(random_face(self.rng), FACES)


class TestLocalCommitSuggestion(unittest.TestCase):

    def test_no_changes(self):
        self.assertEqual(local_commit_suggestion(DiffAnalysis()), "chore: update files")

    def test_docs_only(self):
        analysis = DiffAnalysis(changed_files=["README.md"], categories={"doc": ["README.md"]}, added=["README.md"])
        self.assertEqual(local_commit_suggestion(analysis), "docs: add README.md")

    def test_new_code(self):
        analysis = DiffAnalysis(changed_files=["pkg/api.go"], categories={"code": ["pkg/api.go"]}, added=["pkg/api.go"])
        self.assertEqual(local_commit_suggestion(analysis), "feat: add api.go")

    def test_mixed_changes(self):
        analysis = DiffAnalysis(
            changed_files=["README.md", "main.go"],
            categories={"doc": ["README.md"], "code": ["main.go"]},
            added=["README.md"],
            modified=["main.go"],
        )
        self.assertEqual(local_commit_suggestion(analysis), "chore: update 2 files")
