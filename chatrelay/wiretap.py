"""
Wiretap: listen in on the wire.

WireLog writes structured JSONL entries for everything that crosses the
relay: the user's message coming in, the raw provider response, and the
reply going back out.

The wire log is separate from the debug log. It's a clean, structured record
of exactly what went over the line: who said what, when, to which model.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_CONTENT = 2000


class WireLog:
    """
    Structured JSONL logger for the wire.
    Each line is one event.

    Format:
        {"ts": "...", "dir": "inbound|provider|outbound", "role": "...",
         "model": "...", "conv": "...", "len": 123, "content": "..."}
    """

    def __init__(self, log_path: str):
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = None
        self._lock = threading.Lock()

    def _ensure_open(self):
        if self._file is None:
            self._file = open(self.log_path, "a", buffering=1, encoding="utf-8")  # line-buffered

    def log(
        self,
        direction: str,  # "inbound" (client->relay), "provider" (raw upstream body), "outbound" (relay->client)
        role: str,
        content: str,
        model: str = "",
        conversation_id: str = "",
    ):
        """Write a wire log entry."""
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "dir": direction,
            "role": role,
            "model": model,
            "conv": conversation_id,
            "len": len(content),
        }

        # Keep short messages whole, long ones head + tail
        if len(content) <= MAX_CONTENT:
            entry["content"] = content
        else:
            half = MAX_CONTENT // 2
            entry["content"] = (
                content[:half]
                + f"\n\n[... {len(content) - MAX_CONTENT} chars truncated ...]\n\n"
                + content[-half:]
            )

        with self._lock:
            self._ensure_open()
            self._file.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def close(self):
        with self._lock:
            if self._file:
                self._file.close()
                self._file = None


def read_entries(log_path: str, last_n: int | None = None) -> list[dict]:
    """Read wire log entries back, skipping lines that don't parse."""
    path = Path(log_path)
    if not path.exists():
        return []
    entries = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                logger.debug("Skipping malformed wire log line: %.80s", line)
    if last_n is not None:
        entries = entries[-last_n:] if last_n > 0 else []
    return entries
