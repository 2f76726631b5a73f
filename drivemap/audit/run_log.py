"""Run log — one JSON line per publish attempt.

Entries are appended to daily files under ``~/.drivemap/audit_logs/`` so an
operator can see which versions were pushed to which policy, and which runs
stopped half way.
"""

from __future__ import annotations

import getpass
import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


@dataclass
class RunLogEntry:
    """A single publish attempt."""

    id: str
    timestamp: str
    actor: str
    action: str
    policy_id: str
    policy_name: str
    version: int = 0
    details: dict[str, Any] = field(default_factory=dict)
    success: bool = True


class RunLog:
    """File-based JSON run log."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else Path.home() / ".drivemap" / "audit_logs"
        self._base_dir.mkdir(parents=True, exist_ok=True)

    def _current_log_file(self) -> Path:
        return self._base_dir / f"{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.jsonl"

    def record(
        self,
        action: str,
        policy_id: str,
        policy_name: str,
        version: int = 0,
        details: Optional[dict[str, Any]] = None,
        success: bool = True,
        actor: Optional[str] = None,
    ) -> RunLogEntry:
        """Append an entry and return it."""
        entry = RunLogEntry(
            id=uuid.uuid4().hex[:16],
            timestamp=datetime.now(timezone.utc).isoformat(),
            actor=actor or getpass.getuser(),
            action=action,
            policy_id=policy_id,
            policy_name=policy_name,
            version=version,
            details=details or {},
            success=success,
        )
        with self._current_log_file().open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(entry)) + "\n")
        return entry

    def get_runs(self, policy_id: Optional[str] = None, limit: int = 50) -> list[RunLogEntry]:
        """Return logged runs, newest first.

        Files are named by date and appended in order, so reading them in
        name order yields the runs oldest first.
        """
        entries: list[RunLogEntry] = []
        for path in sorted(self._base_dir.glob("*.jsonl")):
            for line in path.read_text(encoding="utf-8").splitlines():
                if line.strip():
                    entries.append(RunLogEntry(**json.loads(line)))

        if policy_id:
            entries = [e for e in entries if e.policy_id == policy_id]
        entries.reverse()
        return entries[:limit]
