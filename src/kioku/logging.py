"""JSONL logging for observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import kioku_home


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    conversation_id: int | None = None
    provider: str | None = None
    duration_ms: float | None = None
    status_code: int | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured logs in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = kioku_home() / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        conversation_id: int | None = None,
        provider: str | None = None,
        duration_ms: float | None = None,
        status_code: int | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            conversation_id=conversation_id,
            provider=provider,
            duration_ms=duration_ms,
            status_code=status_code,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_send(
        self,
        conversation_id: int,
        provider: str,
        messages_count: int,
    ) -> None:
        """Log a chat request being dispatched."""
        self.log(
            "chat_send",
            conversation_id=conversation_id,
            provider=provider,
            messages_count=messages_count,
        )

    def log_complete(
        self,
        conversation_id: int,
        provider: str,
        duration_ms: float,
        chars: int,
        *,
        superseded: bool = False,
    ) -> None:
        """Log a finished chat stream."""
        extra: dict[str, Any] = {"chars": chars}
        if superseded:
            extra["superseded"] = True
        self.log(
            "chat_complete",
            conversation_id=conversation_id,
            provider=provider,
            duration_ms=duration_ms,
            **extra,
        )

    def log_error(
        self,
        conversation_id: int | None,
        error: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        """Log a failed send."""
        self.log(
            "chat_error",
            conversation_id=conversation_id,
            provider=provider,
            status_code=status_code,
            error=error,
        )

    def log_synthesis(
        self,
        conversation_id: int,
        success: bool,
        *,
        facts: int = 0,
        checkpoint: int = 0,
        error: str | None = None,
    ) -> None:
        """Log a rolling synthesis attempt."""
        self.log(
            "synthesis",
            conversation_id=conversation_id,
            error=error if not success else None,
            success=success,
            facts=facts,
            checkpoint=checkpoint,
        )

    def log_reminder(self, conversation_id: int, reminder_id: int, due_at: str) -> None:
        """Log a reminder created from an assistant reply."""
        self.log(
            "reminder_created",
            conversation_id=conversation_id,
            reminder_id=reminder_id,
            due_at=due_at,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
