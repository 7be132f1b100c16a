from typing import Any, Dict, List, Optional

from fieldops.utils.dates import utcnow


def make_entry(
    status: str,
    notes: Optional[str] = None,
    location: Optional[Dict[str, Any]] = None,
    task_id: Optional[int] = None
) -> Dict[str, Any]:
    return {
        "timestamp": utcnow().isoformat(),
        "status": status,
        "task_id": task_id,
        "location": location,
        "notes": notes,
    }


def appended(log: Optional[List[Dict[str, Any]]], entry: Dict[str, Any]) -> List[Dict[str, Any]]:
    """New log value with ``entry`` appended; the stored list is never mutated in place."""
    return [*(log or []), entry]
