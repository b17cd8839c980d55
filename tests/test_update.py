import datetime
import os
import threading

import pytest

from config.models import Config, LLMConfig, UpdateConfig
from core import background
from core.update import check_for_update, is_dev_version, is_newer_version, mark_checked, should_check
from utils.errors import GitHubError


class FakeClient:
    def __init__(self, tag=None, error=None):
        self.tag = tag
        self.error = error
        self.calls = 0

    def get_latest_release(self, full_name):
        self.calls += 1
        if self.error:
            raise self.error
        return self.tag


@pytest.mark.parametrize(
    "latest, current, expected",
    [
        ("0.5.0", "0.4.9", True),
        ("v1.0.0", "0.9.12", True),
        ("0.4.10", "0.4.9", True),
        ("0.4.0", "0.4.0", False),
        ("0.4.0", "v0.4.0", False),
        ("0.3.9", "0.4.0", False),
        ("0.4.0", "0.4.0-dev", False),
        ("0.4.0", "0.4.0-11-g9839b73", False),
        ("0.4.1", "0.4.0-dev", True),
    ],
)
def test_is_newer_version(latest, current, expected):
    assert is_newer_version(latest, current) is expected


def test_is_dev_version():
    assert is_dev_version("0.4.0-dev")
    assert is_dev_version("")
    assert not is_dev_version("0.4.0")


def test_should_check(tmp_path):
    stamp = tmp_path / ".update_check"
    assert should_check(stamp)

    mark_checked(stamp)
    assert not should_check(stamp, interval_hours=24)

    two_days_ago = (datetime.datetime.now() - datetime.timedelta(hours=48)).timestamp()
    os.utime(stamp, (two_days_ago, two_days_ago))
    assert should_check(stamp, interval_hours=24)


def test_check_for_update(tmp_path):
    stamp = tmp_path / "noidea" / ".update_check"
    client = FakeClient(tag="v9.0.0")

    assert check_for_update(UpdateConfig(), "0.5.0", client, stamp) == "9.0.0"
    assert stamp.exists()

    # rate limited until the interval passes
    assert check_for_update(UpdateConfig(), "0.5.0", client, stamp) is None
    assert client.calls == 1


def test_check_for_update_up_to_date(tmp_path):
    stamp = tmp_path / ".update_check"
    assert check_for_update(UpdateConfig(), "0.5.0", FakeClient(tag="v0.5.0"), stamp) is None
    assert stamp.exists()


def test_check_for_update_swallows_errors(tmp_path):
    stamp = tmp_path / ".update_check"
    client = FakeClient(error=GitHubError("offline"))

    assert check_for_update(UpdateConfig(), "0.5.0", client, stamp) is None
    assert not stamp.exists()


def test_check_disabled_or_dev_build(tmp_path):
    client = FakeClient(tag="v9.0.0")
    assert check_for_update(UpdateConfig(check=False), "0.5.0", client, tmp_path / "a") is None
    assert check_for_update(UpdateConfig(), "0.5.0-dev", client, tmp_path / "b") is None
    assert client.calls == 0


def test_run_detached_logs_failures():
    done = threading.Event()

    def failing():
        done.set()
        raise RuntimeError("boom")

    thread = background.run_detached(failing, name="test-task")
    thread.join(timeout=5)

    assert done.is_set()
    assert thread.daemon


def test_api_key_check_only_for_ai_commands():
    config = Config(llm=LLMConfig(enabled=True))
    assert background.start_api_key_check(config, console=None, command="issue") is None
    assert background.start_api_key_check(Config(), console=None, command="suggest") is None


def test_update_check_disabled():
    assert background.start_update_check(Config(update=UpdateConfig(check=False)), console=None) is None
