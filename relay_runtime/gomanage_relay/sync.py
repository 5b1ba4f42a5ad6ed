"""Pull-sync reporting over normalized pages.

Push (write-back to GO!Manage) is deliberately not implemented: the upstream
write API has never been exercised, so the relay rejects it instead of faking it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .translator import NormalizedPage

OPERATIONS = ("pull", "push")


@dataclass
class SyncResult:
    success: bool
    entity: str
    operation: str
    records_processed: int = 0
    records_success: int = 0
    records_error: int = 0
    error_message: Optional[str] = None
    duration: str = "0.0s"

    def to_wire(self) -> Dict[str, Any]:
        d = asdict(self)
        return {
            "success": d["success"],
            "entity": d["entity"],
            "operation": d["operation"],
            "recordsProcessed": d["records_processed"],
            "recordsSuccess": d["records_success"],
            "recordsError": d["records_error"],
            "errorMessage": d["error_message"],
            "duration": d["duration"],
        }


def _fmt_duration(seconds: float) -> str:
    return f"{max(seconds, 0.0):.1f}s"


def summarize_pull(entity: str, page: NormalizedPage, seconds: float) -> SyncResult:
    errors = sum(1 for r in page.records if r.sync_status == "error")
    processed = len(page.records)
    msg = None
    if errors:
        msg = f"{errors} records could not be normalized"
    elif not page.shape_ok:
        msg = "upstream payload shape not recognized; nothing synced"
    return SyncResult(
        success=page.shape_ok and errors == 0,
        entity=entity,
        operation="pull",
        records_processed=processed,
        records_success=processed - errors,
        records_error=errors,
        error_message=msg,
        duration=_fmt_duration(seconds),
    )


def failed(entity: str, operation: str, message: str, seconds: float = 0.0) -> SyncResult:
    return SyncResult(
        success=False,
        entity=entity,
        operation=operation,
        records_error=1 if operation == "pull" else 0,
        error_message=message,
        duration=_fmt_duration(seconds),
    )
