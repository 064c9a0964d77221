"""Debug and progress logging utilities for MCP health checks."""

import sys
from datetime import datetime
from typing import Any

# Global output state - set by CLI arguments
_debug_enabled = False
_verbose_enabled = False

# Option names whose values never reach the log in clear text
SENSITIVE_KEY_PARTS = ("token", "auth", "secret", "password", "credential", "key")
MASK_KEEP = 2


def set_debug_enabled(enabled: bool) -> None:
    """Turn timestamped debug output on or off."""
    global _debug_enabled
    _debug_enabled = enabled


def set_verbose_enabled(enabled: bool) -> None:
    """Turn progress output on or off."""
    global _verbose_enabled
    _verbose_enabled = enabled


def is_debug_enabled() -> bool:
    return _debug_enabled


def is_verbose_enabled() -> bool:
    """--debug implies --verbose."""
    return _verbose_enabled or _debug_enabled


def get_timestamp() -> str:
    """Wall-clock time with milliseconds, e.g. 14:03:07.512."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def debug_log(message: str, level: str = "INFO", category: str = "GENERAL") -> None:
    """Write a '[time] [CATEGORY-LEVEL] message' line to stderr when debug is on."""
    if not _debug_enabled:
        return
    print(f"[{get_timestamp()}] [{category}-{level}] {message}", file=sys.stderr)


def verbose_log(message: str) -> None:
    """Log progress messages if verbose mode is enabled."""
    if is_verbose_enabled():
        print(message, file=sys.stderr)


def mask_sensitive_value(key: str, value: str) -> str:
    """Mask the value of a secret-looking option, keeping its first and last two characters."""
    if not any(part in key.lower() for part in SENSITIVE_KEY_PARTS):
        return value
    if len(value) <= MASK_KEEP * 2:
        return "*" * len(value)
    return value[:MASK_KEEP] + "*" * (len(value) - MASK_KEEP * 2) + value[-MASK_KEEP:]


def log_check_start(check_name: str, server: str, endpoint: str, transport_kind: str) -> None:
    """Log the start of a single-server check."""
    if not is_debug_enabled():
        return

    debug_log(f"🔍 [{check_name}] {server}: {transport_kind} {endpoint}", "INFO", "CHECK")


def log_check_result(check_name: str, server: str, status: str, details: str = "") -> None:
    """Log the outcome of a single-server check."""
    if not is_debug_enabled():
        return

    level = "INFO" if status in ("up", "passed", "scored", "local") else "WARN"
    message = f"🏁 [{check_name}] {server}: {status}"
    if details:
        message += f" ({details})"
    debug_log(message, level, "CHECK")


def log_best_effort(operation: str, server: str, ok: bool, error: str | None = None) -> None:
    """Log the outcome of a best-effort operation whose failure is not propagated."""
    if ok:
        debug_log(f"✅ {operation} for {server}", "INFO", "BEST-EFFORT")
    else:
        debug_log(f"⚠️ {operation} failed for {server}: {error}", "WARN", "BEST-EFFORT")


def log_batch_progress(operation: str, batch_number: int, total_batches: int, counts: dict[str, Any]) -> None:
    """Log completion of one orchestrator batch."""
    details = ", ".join(f"{key}={value}" for key, value in counts.items())
    verbose_log(f"📦 [{operation}] batch {batch_number}/{total_batches} done ({details})")
    debug_log(f"[{operation}] batch {batch_number}/{total_batches} done ({details})", "INFO", "BATCH")


def log_batch_summary(operation: str, counts: dict[str, Any], execution_time: float) -> None:
    """Log a completed orchestrator run."""
    if not is_debug_enabled():
        return

    debug_log("", "INFO", "SUMMARY")  # Empty line
    debug_log(f"📊 {operation} summary:", "INFO", "SUMMARY")
    for key, value in counts.items():
        debug_log(f"   {key}: {value}", "INFO", "SUMMARY")
    debug_log(f"   Execution time: {execution_time:.2f}s", "INFO", "SUMMARY")
