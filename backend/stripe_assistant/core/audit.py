"""
Audit logging for Stripe operations executed by the assistant.

Every tool invocation made on behalf of a user is recorded with its
arguments and outcome so that changes to the Stripe account can be traced
back to a chat request.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stripe_assistant.db.base_class import Base

logger = logging.getLogger("stripe_assistant.audit")


# Checked in order; the first matching keyword wins
_RESOURCE_KEYWORDS = (
    ("paymentmethod", "payment_method"),
    ("testclock", "test_clock"),
    ("subscription", "subscription"),
    ("customer", "customer"),
    ("product", "product"),
    ("price", "price"),
    ("coupon", "coupon"),
    ("invoice", "invoice"),
)


def resource_type_for(tool_name: str) -> str:
    """Map a tool name such as ``createCustomer`` to the Stripe resource it touches."""
    lowered = tool_name.lower()
    for keyword, resource_type in _RESOURCE_KEYWORDS:
        if keyword in lowered:
            return resource_type
    return "unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """One executed operation."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)
    action = Column(String, nullable=False, index=True)  # tool name, e.g. "createCustomer"
    resource_type = Column(String, index=True)  # e.g. "customer", "test_clock"
    input = Column(Text)  # JSON arguments
    output = Column(Text)  # JSON outcome
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text)

    __table_args__ = (
        Index("idx_audit_org_timestamp", "organization_id", "timestamp"),
        Index("idx_audit_user_action", "user_id", "action"),
    )

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.user_id} - {self.action}>"


class AuditLogger:
    """Service for creating audit log entries"""

    @staticmethod
    async def log(
        db: AsyncSession,
        action: str,
        user_id: Optional[int] = None,
        organization_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        input_data: Optional[Dict[str, Any]] = None,
        output_data: Optional[Any] = None,
        success: bool = True,
        error_message: Optional[str] = None,
    ) -> AuditLog:
        """
        Create an audit log entry.

        A failed write is rolled back and logged; it never interrupts the
        request that triggered it.
        """
        log_entry = AuditLog(
            timestamp=_utcnow(),
            user_id=user_id,
            organization_id=organization_id,
            action=action,
            resource_type=resource_type,
            input=json.dumps(input_data, default=str) if input_data is not None else None,
            output=json.dumps(output_data, default=str) if output_data is not None else None,
            success=success,
            error_message=error_message,
        )

        try:
            db.add(log_entry)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.warning(f"Audit log write skipped due to DB error: {exc}")

        return log_entry

    @staticmethod
    async def log_tool_call(
        db: AsyncSession,
        user_id: Optional[int],
        organization_id: Optional[str],
        result,
    ) -> AuditLog:
        """
        Record one tool invocation.

        Args:
            db: Database session
            user_id: ID of the user whose chat request triggered the call
            organization_id: Organization whose Stripe account was used
            result: ToolInvocationResult with name, arguments and outcome
        """
        outcome = result.outcome
        error = outcome.get("error") if isinstance(outcome, dict) else None
        return await AuditLogger.log(
            db=db,
            action=result.name,
            user_id=user_id,
            organization_id=organization_id,
            resource_type=resource_type_for(result.name),
            input_data=result.arguments,
            output_data=outcome,
            success="error" not in outcome,
            error_message=str(error) if error is not None else None,
        )
