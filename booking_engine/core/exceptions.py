"""
Domain exceptions for the booking engine.

Every error here is recoverable and user-actionable: the API layer turns it
into a JSON error envelope with the status code declared on the class.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import status


class DomainError(Exception):
    """Base exception for all booking engine errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Any) -> None:
        super().__init__(
            f"{resource} {resource_id} not found",
            details={"resource": resource, "id": str(resource_id)},
        )


class PermissionDeniedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


# Scheduling

class SchedulingError(DomainError):
    """A proposed start time cannot be committed."""


class PastDateError(SchedulingError):
    def __init__(self, proposed_start: datetime, now: datetime) -> None:
        super().__init__(
            "Cannot schedule a lesson in the past",
            details={"proposed_start": proposed_start.isoformat(), "now": now.isoformat()},
        )
        self.proposed_start = proposed_start


class OverlapError(SchedulingError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, label: str, conflicting_start: datetime) -> None:
        super().__init__(
            f'The proposed time overlaps with "{label}" ({conflicting_start.isoformat()})',
            details={"label": label, "conflicting_start": conflicting_start.isoformat()},
        )
        self.label = label
        self.conflicting_start = conflicting_start


# State machines

class InvalidTransitionError(DomainError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(
            f"Invalid {entity} transition: {current} -> {target}",
            details={"entity": entity, "current": current, "target": target},
        )
        self.current = current
        self.target = target


class SessionLockedError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, session_number: int, paid_sessions: int) -> None:
        super().__init__(
            f"Session {session_number} is locked until more installments are paid",
            details={"session_number": session_number, "paid_sessions": paid_sessions},
        )


# Payments and installments

class MissingReasonError(DomainError):
    def __init__(self) -> None:
        super().__init__("A rejection reason is required")


class UnsupportedSessionCountError(DomainError):
    def __init__(self, total_sessions: int) -> None:
        super().__init__(
            f"Installment plans are not available for {total_sessions} sessions",
            details={"total_sessions": total_sessions},
        )


class InvalidAmountError(DomainError):
    pass


class AmountMismatchError(DomainError):
    pass


class DuplicateBookingError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class InstallmentPlanCompleteError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class InstallmentPendingError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class PaymentIdConflictError(DomainError):
    """An external payment id already belongs to a different purchase."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, external_payment_id: str) -> None:
        super().__init__(
            f"Payment {external_payment_id} is already recorded for another purchase",
            details={"external_payment_id": external_payment_id},
        )


class ConcurrentModificationError(DomainError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} {entity_id} was modified concurrently; retry the request",
            details={"entity": entity, "id": str(entity_id)},
        )


# External collaborators

class MeetingProvisioningError(Exception):
    """The video provider could not create a meeting. Never fails a transition."""


class WebhookSignatureError(DomainError):
    """A provider notification failed signature or freshness checks."""

    status_code = status.HTTP_401_UNAUTHORIZED
