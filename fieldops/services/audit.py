"""
Audit sink.

Every state-changing routing operation emits an audit event. Delivery is
fire-and-forget: sink failures are logged and never reach the caller.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Protocol

from fieldops.core.logging_config import get_correlation_id, logger
from fieldops.utils.dates import utcnow


class AuditAction:
    OPTIMIZE_ROUTES = "route.optimize"
    ASSIGN_ROUTE = "route.assign"
    UPDATE_PROGRESS = "route.progress"
    REOPTIMIZE_ROUTE = "route.reoptimize"
    VALIDATE_CONSTRAINTS = "route.validate"


@dataclass
class AuditEvent:
    action: str
    business_id: int
    success: bool
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())
    correlation_id: str = field(default_factory=get_correlation_id)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None:
        ...


class LoggingAuditSink:
    """Writes audit events as JSON lines on the ``fieldops.audit`` logger."""

    def __init__(self):
        self.audit_logger = logging.getLogger("fieldops.audit")

    def record(self, event: AuditEvent) -> None:
        self.audit_logger.info(json.dumps(asdict(event), default=str))


class AuditService:
    def __init__(self, sink: Optional[AuditSink] = None):
        self.sink = sink or LoggingAuditSink()

    def record(
        self,
        action: str,
        business_id: int,
        success: bool,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
        **metadata: Any
    ) -> None:
        try:
            self.sink.record(AuditEvent(
                action=action,
                business_id=business_id,
                success=success,
                before=before,
                after=after,
                metadata=metadata,
            ))
        except Exception as e:
            logger.warning(f"Audit sink failed for {action}: {type(e).__name__}: {e}")


audit_service = AuditService()
