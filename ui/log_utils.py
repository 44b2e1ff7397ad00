"""Shared logging utilities."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit
from uuid import uuid4

from core.request_types import FetchResult

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_NAME = "hopfetch.log"
BODY_PREVIEW_CHARS = 500


def write_fetch_log(
    url: str,
    method: str,
    result: FetchResult,
    hops: list[dict[str, Any]],
    *,
    log_root: Path = LOG_ROOT,
) -> Path:
    """Write a single fetch trace as JSON."""
    payload = {
        "timestamp": _utc_now(),
        "method": method,
        "url": redact_url(url),
        "hops": [{**hop, "url": redact_url(hop.get("url", ""))} for hop in hops],
        "error_code": result.error_code,
        "error_message": result.error_message,
        "header_info": _redact_info(result.header_info),
        "body_preview": result.body[:BODY_PREVIEW_CHARS],
    }
    return _write_json(log_root / "fetches", payload)


def write_cli_log(
    level: str,
    message: str,
    *,
    log_root: Path = LOG_ROOT,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    log_file = log_root / CLI_LOG_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with log_file.open("a") as f:
        f.write(line)


def redact_url(url: str) -> str:
    """Mask a password embedded in the URL's userinfo."""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    netloc = f"{parts.username}:{_mask(parts.password)}@{host}"
    return urlunsplit(parts._replace(netloc=netloc))


def redact_credentials(credentials: str) -> str:
    """Mask the password half of ``username:password``."""
    if not credentials:
        return ""
    username, sep, password = credentials.partition(":")
    if not sep:
        return username
    return f"{username}:{_mask(password)}"


def _redact_info(info: dict[str, Any]) -> dict[str, Any]:
    redacted = dict(info)
    for key in ("url", "effective_url"):
        if isinstance(redacted.get(key), str):
            redacted[key] = redact_url(redacted[key])
    return redacted


def _write_json(folder: Path, payload: dict[str, Any]) -> Path:
    """Write payload to a unique JSON file in the given folder."""
    folder.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S.%fZ")
    file_path = folder / f"{timestamp}_{uuid4().hex}.json"
    file_path.write_text(json.dumps(payload, indent=2, default=str))
    return file_path


def _mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()
