"""Shared logging utilities."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "proxy.log"
MAX_FORWARD_LOGS = 1000


def write_forward_log(
    method: str,
    path: str,
    target: str,
    status: int,
    elapsed_ms: float,
    *,
    log_root: Path = LOG_ROOT,
    keep: int = MAX_FORWARD_LOGS,
) -> Path:
    """Write a single forwarded request log entry, keeping only the newest `keep` entries."""
    payload = {
        "timestamp": _utc_now(),
        "method": method,
        "path": path,
        "target": target,
        "status": status,
        "elapsed_ms": round(elapsed_ms, 1),
    }
    folder = log_root / "forwarded"
    file_path = _write_json(folder, payload)
    _cleanup_forward_folder(folder, keep)
    return file_path


def _cleanup_forward_folder(folder: Path, keep: int) -> int:
    """Delete all but the `keep` most recent log files in the folder."""
    files = sorted(folder.glob("*.json"))
    if len(files) <= keep:
        return 0

    deleted = 0
    # Filenames start with the UTC timestamp, so sorted order is oldest first
    for old_file in files[: len(files) - keep]:
        try:
            old_file.unlink()
            deleted += 1
        except OSError:
            pass
    return deleted


def write_cli_log(
    level: str,
    message: str,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    CLI_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with CLI_LOG_FILE.open("a") as f:
        f.write(line)


def redact_url(url: str) -> str:
    """Mask credentials embedded in a URL."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest.split("/", 1)[0]:
        return url
    userinfo, host = rest.split("@", 1)
    return f"{scheme}://{_mask(userinfo)}@{host}"


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
