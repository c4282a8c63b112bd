"""Command-line interface for pywebget using Click."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import click
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential
from tqdm import tqdm

from pywebget import __version__
from pywebget.config import Config
from pywebget.errors import EmptyResultError, TransportError
from pywebget.http.buffer import ResponseBuffer
from pywebget.http.client import HttpClient
from pywebget.http.cookies import read_cookie_records


# Setup logging - default to WARNING so body output stays clean
# INFO and DEBUG logs are only shown when --verbose is used
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.transient


def create_retry_decorator(config: Config):
    """Create a tenacity retry decorator from config.

    Only transient transport failures (connect, resolve, timeout, send and
    receive errors) are retried.

    Args:
        config: Configuration object

    Returns:
        Configured retry decorator
    """
    return retry(
        stop=stop_after_attempt(config.max_retries),
        wait=wait_exponential(
            multiplier=config.retry_multiplier,
            min=config.retry_wait_min,
            max=config.retry_wait_max,
        ),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )


def _progress_sink(chunk: bytes, data: Tuple[ResponseBuffer, tqdm]) -> int:
    """Write callback appending to a buffer while advancing a progress bar."""
    buffer, bar = data
    consumed = buffer.append(chunk)
    bar.update(consumed)
    return consumed


def _parse_headers(values: Tuple[str, ...]) -> dict:
    headers = {}
    for value in values:
        if ':' not in value:
            raise click.BadParameter(f"Expected 'Name: value', got {value!r}", param_hint='--header')
        name, header_value = value.split(':', 1)
        headers[name.strip()] = header_value.strip()
    return headers


@click.group(invoke_without_command=True)
@click.option('--version', '-v', is_flag=True, help='Show version and exit')
@click.pass_context
def cli(ctx, version):
    """pywebget - Fetch web resources with persistent cookies.

    Bodies are captured in memory and printed or saved; cookies are kept in
    a Netscape-format cookie jar shared between runs.
    """
    if version:
        click.echo(f"pywebget version {__version__}")
        ctx.exit()

    # If no subcommand, show help
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument('url')
@click.option('--cookie-jar', '-c', help='Cookie jar file (Netscape format), read and written')
@click.option('--timeout', default=20.0, type=float, help='Transfer timeout in seconds')
@click.option('--user-agent', '-U', help='Custom user agent')
@click.option('--header', '-H', multiple=True, help='Extra header "Name: value" (repeatable)')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write body to file')
@click.option('--fail', '-f', is_flag=True, help='Fail on HTTP status >= 400')
@click.option('--no-redirect', is_flag=True, help='Do not follow redirects')
@click.option('--max-retries', default=3, help='Maximum attempts for transient failures')
@click.option('--retry-wait-min', default=1.0, help='Minimum wait between retries (seconds)')
@click.option('--retry-wait-max', default=10.0, help='Maximum wait between retries (seconds)')
@click.option('--progress', is_flag=True, help='Show a download progress bar')
@click.option('--show-url', is_flag=True, help='Print the effective URL to stderr')
@click.option('--trace', is_flag=True, help='Trace request and response headers to stderr')
@click.option('--verbose', is_flag=True, help='Enable verbose logging')
def fetch(
    url: str,
    cookie_jar: Optional[str],
    timeout: float,
    user_agent: Optional[str],
    header: Tuple[str, ...],
    output: Optional[str],
    fail: bool,
    no_redirect: bool,
    max_retries: int,
    retry_wait_min: float,
    retry_wait_max: float,
    progress: bool,
    show_url: bool,
    trace: bool,
    verbose: bool,
):
    """Fetch a URL and print or save the response body.

    Exits with the transport error code when the transfer fails.

    Example:
        pywebget fetch "https://wiki.example.org/api.php?action=query" -c cookies.txt
    """
    # Enable verbose logging if requested
    if verbose:
        logging.getLogger().setLevel(logging.INFO)
        # Also enable httpx logging
        logging.getLogger('httpx').setLevel(logging.INFO)

    try:
        config = Config(
            cookie_file=cookie_jar,
            timeout=timeout,
            user_agent=user_agent,
            verbose=trace,
            follow_redirects=not no_redirect,
            fail_on_error=fail,
            headers=_parse_headers(header),
            max_retries=max_retries,
            retry_wait_min=retry_wait_min,
            retry_wait_max=retry_wait_max,
            show_progress=progress,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    @create_retry_decorator(config)
    def _fetch_with_retry():
        with HttpClient.create(config=config) as client:
            client.set_url(url)

            if config.show_progress:
                buffer = ResponseBuffer(max_size=config.max_body_size)
                with tqdm(desc="Fetching", unit="B", unit_scale=True, file=sys.stderr) as bar:
                    client.set_write_function(_progress_sink, (buffer, bar))
                    result = client.perform()
                content = buffer.content()
            else:
                result = client.perform()
                content = client.content()

            return result, content

    try:
        result, content = _fetch_with_retry()
    except TransportError as e:
        logger.error(f"Failed to fetch {url}: {e}")
        click.echo(f"✗ Failed: {e}", err=True)
        sys.exit(int(e.code))
    except EmptyResultError as e:
        click.echo(f"✗ Failed: {e}", err=True)
        sys.exit(1)

    logger.info(f"Fetched {result.effective_url}: HTTP {result.status_code}, {result.size} bytes")

    if output:
        Path(output).write_bytes(content)
        click.echo(f"Saved {result.size} bytes to {output}", err=True)
    else:
        click.echo(content, nl=False)

    if show_url:
        click.echo(result.effective_url, err=True)


@cli.command()
@click.argument('jar', required=False, type=click.Path(dir_okay=False))
@click.option('--all', 'show_all', is_flag=True, help='Include expired cookies')
def cookies(jar: Optional[str], show_all: bool):
    """List the cookies stored in a cookie jar.

    Defaults to ~/.pywebget/cookies.txt (or $PYWEBGET_COOKIE_JAR).
    """
    jar_path = Path(jar or Config().cookie_file or Config.default_cookie_file())

    records = read_cookie_records(jar_path)
    if not show_all:
        records = [record for record in records if not record.is_expired()]

    if not records:
        click.echo(f"No cookies in {jar_path}")
        return

    click.echo(f"Cookies in {jar_path}:")
    click.echo()

    for record in records:
        if record.expires == 0:
            expiry = "session"
        else:
            expiry = datetime.fromtimestamp(record.expires).isoformat(sep=' ')
        flags = []
        if record.secure:
            flags.append("secure")
        if record.http_only:
            flags.append("httponly")
        if record.include_subdomains:
            flags.append("subdomains")
        click.echo(f"  • {record.domain}{record.path}  {record.name}={record.value}")
        click.echo(f"      expires: {expiry}  flags: {', '.join(flags) or '-'}")

    click.echo()
    click.echo(f"Total: {len(records)} cookie(s)")


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
