"""rich console logger for fetch events."""

from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.request_types import FetchResult
from ui.log_utils import LOG_ROOT, redact_url, write_cli_log, write_fetch_log

console = Console(stderr=True)


class HopInfo:
    """Info about a single hop."""

    def __init__(self, hop: int, method: str, url: str, status: int, timestamp: datetime):
        self.hop = hop
        self.method = method
        self.url = url
        self.status = status
        self.timestamp = timestamp
        self.target: str | None = None


class ConsoleLogger:
    """Print hop events as they happen and keep file logs."""

    def __init__(
        self,
        out: Console | None = None,
        *,
        verbose: bool = False,
        trace: bool = False,
        log_root: Path = LOG_ROOT,
    ):
        self._console = out or console
        self._verbose = verbose
        self._trace = trace
        self._log_root = log_root
        self._lock = Lock()
        self._hops: list[HopInfo] = []
        self._errors: list[str] = []

    @property
    def hops(self) -> list[HopInfo]:
        return list(self._hops)

    def log_hop(self, hop: int, method: str, url: str, status: int) -> None:
        """Log a completed HTTP transaction."""
        with self._lock:
            self._hops.append(HopInfo(hop, method, url, status, datetime.now()))
            if self._verbose:
                self._console.print(f"[dim]#{hop}[/dim] {method} {escape(redact_url(url))} -> [bold]{status}[/bold]")
            write_cli_log("HOP", redact_url(url), log_root=self._log_root, hop=hop, method=method, status=status)

    def log_redirect(self, hop: int, target_url: str) -> None:
        """Log a redirect about to be followed."""
        with self._lock:
            if self._hops:
                self._hops[-1].target = target_url
            if self._verbose:
                self._console.print(f"[dim]#{hop}[/dim] [cyan]redirect[/cyan] -> {escape(redact_url(target_url))}")
            write_cli_log("REDIRECT", redact_url(target_url), log_root=self._log_root, hop=hop)

    def log_error(self, url: str, code: int, message: str) -> None:
        """Log a transport error."""
        with self._lock:
            truncated = message[:80] + "..." if len(message) > 80 else message
            self._errors.append(f"[{code}] {truncated}")
            if self._verbose:
                self._console.print(f"[red]! {escape(redact_url(url))}[/red] {escape(f'[{code}] {truncated}')}")
            write_cli_log("ERROR", message[:200], log_root=self._log_root, url=redact_url(url), code=code)

    def log_result(self, url: str, method: str, result: FetchResult) -> None:
        """Log the final outcome and optionally write the JSON trace."""
        with self._lock:
            status = result.header_info.get("http_status", 0)
            write_cli_log(
                "RESULT",
                result.error_message or "ok",
                log_root=self._log_root,
                url=redact_url(url),
                status=status,
                code=result.error_code,
            )
            if self._trace:
                write_fetch_log(url, method, result, self._hop_records(), log_root=self._log_root)
            if self._verbose:
                self._console.print(self.build_summary(result))

    def build_summary(self, result: FetchResult) -> Panel:
        """Build a panel describing the redirect chain and outcome."""
        table = Table(show_header=True, header_style="bold", expand=True, box=None)
        table.add_column("Hop", style="dim", width=4)
        table.add_column("Time", style="dim", width=8)
        table.add_column("Method", width=6)
        table.add_column("Status", width=6)
        table.add_column("URL", ratio=2)

        for info in self._hops:
            table.add_row(
                str(info.hop),
                info.timestamp.strftime("%H:%M:%S"),
                info.method,
                str(info.status),
                escape(redact_url(info.url)),
            )

        if self._errors:
            table.caption = escape("; ".join(self._errors[-3:]))

        if result.ok:
            title = Text("OK", style="green bold")
            border = "green"
        else:
            title = Text(f"[{result.error_code}] {result.error_message}", style="red bold")
            border = "red"
        return Panel(table, title=title, border_style=border)

    def _hop_records(self) -> list[dict[str, Any]]:
        return [
            {
                "hop": info.hop,
                "method": info.method,
                "url": info.url,
                "status": info.status,
                "target": info.target,
                "timestamp": info.timestamp.isoformat(),
            }
            for info in self._hops
        ]
