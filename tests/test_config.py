"""Tests for configuration defaults and validation."""

import pytest

from pywebget.config import Config


def test_defaults():
    config = Config()

    assert config.timeout == 20
    assert config.user_agent is None
    assert config.verbose is False
    assert config.cookie_file is None
    assert config.follow_redirects is True
    assert config.headers == {}


@pytest.mark.parametrize("kwargs", [
    {"timeout": 0},
    {"timeout": -5},
    {"max_redirects": -1},
    {"max_body_size": 0},
    {"max_retries": 0},
])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        Config(**kwargs)


def test_cookie_file_from_environment(monkeypatch):
    monkeypatch.setenv("PYWEBGET_COOKIE_JAR", "/tmp/wiki-cookies.txt")

    assert Config().cookie_file == "/tmp/wiki-cookies.txt"
    assert Config(cookie_file="explicit.txt").cookie_file == "explicit.txt"


def test_default_cookie_file_under_home(monkeypatch, tmp_path):
    monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path)

    assert Config.default_cookie_file() == tmp_path / ".pywebget" / "cookies.txt"
    assert (tmp_path / ".pywebget").is_dir()
