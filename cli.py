"""CLI entry point for hopfetch."""

import sys
from dataclasses import dataclass, field

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from core.config import CONFIG_FILE, load_config
from core.exceptions import ConfigurationError
from services.fetcher import FetchOrchestrator
from ui.console import ConsoleLogger
from ui.log_utils import redact_credentials, write_cli_log

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliOptions:
    url: str = ""
    params: dict[str, str] = field(default_factory=dict)
    use_post: bool | None = None
    credentials: str = ""
    overrides: dict[str, object] = field(default_factory=dict)
    verbose: bool = False
    trace: bool = False
    show_config: bool = False
    show_help: bool = False


def parse_args(argv: list[str]) -> CliOptions:
    """Parse command-line arguments."""
    opts = CliOptions()
    args = iter(argv)
    for arg in args:
        if arg in ("--help", "-h"):
            opts.show_help = True
        elif arg == "--config":
            opts.show_config = True
        elif arg in ("-v", "--verbose"):
            opts.verbose = True
        elif arg == "--trace":
            opts.trace = True
        elif arg == "--post":
            opts.use_post = True
        elif arg == "--get":
            opts.use_post = False
        elif arg == "--native":
            opts.overrides["redirect_mode"] = "native"
        elif arg == "--manual":
            opts.overrides["redirect_mode"] = "manual"
        elif arg in ("-d", "--data"):
            key, sep, value = _value_for(arg, args).partition("=")
            if not sep or not key:
                raise ConfigurationError(f"{arg} expects key=value")
            opts.params[key] = value
        elif arg in ("-u", "--user"):
            opts.credentials = _value_for(arg, args)
        elif arg == "--max-redirects":
            opts.overrides["max_redirects"] = _int_value_for(arg, args)
        elif arg == "--connect-timeout":
            opts.overrides["connect_timeout_seconds"] = _int_value_for(arg, args)
        elif arg == "--timeout":
            opts.overrides["fetch_timeout_seconds"] = _int_value_for(arg, args)
        elif arg in ("-A", "--user-agent"):
            opts.overrides["user_agent"] = _value_for(arg, args)
        elif arg.startswith("-"):
            raise ConfigurationError(f"Unknown option: {arg}")
        elif opts.url:
            raise ConfigurationError(f"Unexpected argument: {arg}")
        else:
            opts.url = arg
    if opts.use_post is None:
        opts.use_post = bool(opts.params)
    return opts


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    argv = sys.argv[1:] if argv is None else argv
    try:
        opts = parse_args(argv)
    except ConfigurationError as e:
        err_console.print(f"[red][ERROR][/red] {escape(str(e))}")
        sys.exit(2)

    if opts.show_help:
        _print_help()
        return

    if opts.show_config:
        console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
        return

    if not opts.url:
        err_console.print("[red][ERROR][/red] No URL given (see --help)")
        sys.exit(2)

    config = load_config(CONFIG_FILE)
    try:
        fetch_config = config.fetch.model_validate({**config.fetch.model_dump(), **opts.overrides})
    except ValidationError as e:
        err_console.print(f"[red][ERROR][/red] Invalid option: {e.errors()[0]['msg']}")
        sys.exit(2)

    logger = ConsoleLogger(
        verbose=opts.verbose,
        trace=opts.trace or config.logging.trace,
        log_root=config.logging.log_dir,
    )
    if opts.verbose and opts.credentials:
        err_console.print(f"[dim]Auth: {redact_credentials(opts.credentials)}[/dim]")

    write_cli_log("START", opts.url, log_root=config.logging.log_dir, post=opts.use_post)
    orchestrator = FetchOrchestrator(config=fetch_config, logger=logger)
    result = orchestrator.fetch(opts.url, opts.params, opts.use_post, opts.credentials)

    console.out(result.body, highlight=False)
    if not result.ok:
        err_console.print(f"[red][ERROR][/red] {escape(f'[{result.error_code}] {result.error_message}')}")
        sys.exit(1)


def _value_for(option: str, args) -> str:
    try:
        return next(args)
    except StopIteration:
        raise ConfigurationError(f"{option} requires a value") from None


def _int_value_for(option: str, args) -> int:
    value = _value_for(option, args)
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{option} expects an integer, got {value!r}") from None


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]hopfetch[/bold cyan]

Fetch a URL via GET or POST, following 301/302/303 redirects even when the
transport may not follow them itself.

[bold]Usage:[/bold]
    hopfetch URL <options>

[bold]Options:[/bold]
    -d, --data KEY=VALUE     Send a parameter (repeatable)
    --get / --post           Parameters in the query string / request body (default: --post with -d)
    -u, --user USER:PASS     HTTP Basic credentials
    -A, --user-agent UA      Override the user agent
    --max-redirects N        Redirect ceiling (default 10)
    --connect-timeout SECS   Connect timeout per hop (default 30)
    --timeout SECS           Fetch timeout per hop (default 30)
    --native / --manual      Force the redirect strategy
    -v, --verbose            Show each hop
    --trace                  Write a JSON trace under the log directory
    --config                 Show config location
    -h, --help               Show this help

[bold]Environment:[/bold]
    HOPFETCH_SANDBOXED=1     Follow redirects manually (auto mode)
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
