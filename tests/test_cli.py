"""Tests for the pywebget command-line interface."""

import time

import httpx
import pytest
from click.testing import CliRunner

from pywebget import __version__
from pywebget import cli as cli_module
from pywebget.http.client import HttpClient
from pywebget.http.cookies import CookieRecord, write_cookie_records


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def use_handler(monkeypatch):
    """Route every client the CLI creates through a mock handler."""

    def _install(handler):
        class MockedClient(HttpClient):
            @classmethod
            def create(cls, cookie_file=None, config=None, transport=None):
                return HttpClient(cookie_file, config=config, transport=httpx.MockTransport(handler))

        monkeypatch.setattr(cli_module, "HttpClient", MockedClient)

    return _install


def test_version(runner):
    result = runner.invoke(cli_module.cli, ["--version"])

    assert result.exit_code == 0
    assert f"pywebget version {__version__}" in result.output


def test_no_command_shows_help(runner):
    result = runner.invoke(cli_module.cli, [])

    assert result.exit_code == 0
    assert "fetch" in result.output
    assert "cookies" in result.output


def test_fetch_prints_body(runner, use_handler, ok_handler):
    use_handler(ok_handler(b'{"logintoken": "abc"}'))

    result = runner.invoke(cli_module.cli, ["fetch", "https://example.test/api.php"])

    assert result.exit_code == 0
    assert '{"logintoken": "abc"}' in result.output


def test_fetch_writes_output_and_cookies(runner, use_handler, tmp_path):
    def handler(request):
        return httpx.Response(200, content=b"token page", headers={"Set-Cookie": "sid=42; Path=/"})

    use_handler(handler)
    out = tmp_path / "body.txt"
    jar = tmp_path / "jar.txt"

    result = runner.invoke(cli_module.cli, [
        "fetch", "https://example.test/login",
        "--output", str(out),
        "--cookie-jar", str(jar),
        "--progress",
        "--show-url",
    ])

    assert result.exit_code == 0, result.output
    assert out.read_bytes() == b"token page"
    assert "sid\t42" in jar.read_text()
    assert "https://example.test/login" in result.output


def test_fetch_sends_extra_headers(runner, use_handler):
    def handler(request):
        return httpx.Response(200, content=request.headers.get("x-wiki", "").encode())

    use_handler(handler)

    result = runner.invoke(cli_module.cli, [
        "fetch", "https://example.test/", "-H", "X-Wiki: octave",
    ])

    assert result.exit_code == 0
    assert "octave" in result.output


def test_fetch_rejects_malformed_header(runner, use_handler, ok_handler):
    use_handler(ok_handler())

    result = runner.invoke(cli_module.cli, ["fetch", "https://example.test/", "-H", "no-colon"])

    assert result.exit_code == 2
    assert "Name: value" in result.output


def test_fetch_failure_exits_with_transport_code(runner, use_handler):
    def handler(request):
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    use_handler(handler)

    result = runner.invoke(cli_module.cli, [
        "fetch", "https://example.test/", "--max-retries", "1",
    ])

    assert result.exit_code == 7
    assert "Failed" in result.output


def test_fetch_retries_transient_failures(runner, use_handler):
    attempts = {"n": 0}

    def handler(request):
        attempts["n"] += 1
        if attempts["n"] < 2:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
        return httpx.Response(200, content=b"second time lucky")

    use_handler(handler)

    result = runner.invoke(cli_module.cli, [
        "fetch", "https://example.test/",
        "--max-retries", "3", "--retry-wait-min", "0", "--retry-wait-max", "0",
    ])

    assert result.exit_code == 0
    assert attempts["n"] == 2
    assert "second time lucky" in result.output


def test_fetch_does_not_retry_http_errors(runner, use_handler):
    attempts = {"n": 0}

    def handler(request):
        attempts["n"] += 1
        return httpx.Response(404, content=b"missing")

    use_handler(handler)

    result = runner.invoke(cli_module.cli, [
        "fetch", "https://example.test/", "--fail", "--max-retries", "3",
    ])

    assert result.exit_code == 22
    assert attempts["n"] == 1


def test_fetch_invalid_timeout(runner, use_handler, ok_handler):
    use_handler(ok_handler())

    result = runner.invoke(cli_module.cli, ["fetch", "https://example.test/", "--timeout", "0"])

    assert result.exit_code == 2


def test_cookies_lists_jar(runner, tmp_path):
    jar = tmp_path / "jar.txt"
    write_cookie_records(jar, [
        CookieRecord(".example.test", True, "/", True, int(time.time()) + 600, "token", "abc", http_only=True),
        CookieRecord("example.test", False, "/", False, 1000, "stale", "old"),
    ])

    result = runner.invoke(cli_module.cli, ["cookies", str(jar)])

    assert result.exit_code == 0
    assert ".example.test/  token=abc" in result.output
    assert "secure, httponly, subdomains" in result.output
    assert "stale" not in result.output
    assert "Total: 1 cookie(s)" in result.output

    result = runner.invoke(cli_module.cli, ["cookies", str(jar), "--all"])
    assert "stale=old" in result.output


def test_cookies_empty_jar(runner, tmp_path):
    jar = tmp_path / "missing.txt"

    result = runner.invoke(cli_module.cli, ["cookies", str(jar)])

    assert result.exit_code == 0
    assert f"No cookies in {jar}" in result.output
