"""
Audit logging for suggestion decisions.
"""

from collections import Counter
from typing import List, Optional

import structlog

from ..models import AuditEntry

logger = structlog.get_logger()


class AuditLogger:
    """
    In-memory audit trail of one suggestion run.
    Every entry is mirrored to structlog.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.entries: List[AuditEntry] = []

    def log(self, entry: AuditEntry) -> None:
        """Add an audit entry."""
        self.entries.append(entry)

        logger.debug(
            entry.message,
            run_id=self.run_id,
            action=entry.action.value,
            entry_id=entry.entry_id,
            record_ids=entry.record_ids,
            matcher=entry.matcher_name,
        )

    def log_many(self, entries: List[AuditEntry]) -> None:
        """Add multiple audit entries."""
        for entry in entries:
            self.log(entry)

    def get_entries(
        self,
        action_filter: Optional[str] = None,
        entry_id: Optional[str] = None,
    ) -> List[AuditEntry]:
        """Get filtered audit entries."""
        entries = self.entries

        if action_filter:
            entries = [e for e in entries if e.action.value == action_filter]

        if entry_id:
            entries = [e for e in entries if e.entry_id == entry_id]

        return entries

    def summary(self) -> dict:
        """Get summary statistics of the audit log."""
        action_counts = Counter(e.action.value for e in self.entries)

        return {
            "run_id": self.run_id,
            "total_entries": len(self.entries),
            "action_counts": dict(action_counts),
        }
