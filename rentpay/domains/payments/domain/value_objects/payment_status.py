"""
Payment Status Value Objects

Collection and disbursement state machines for a rent payment.
"""

from enum import Enum


class CollectionStatus(str, Enum):
    """Tenant-to-platform leg."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    def is_final(self) -> bool:
        return self in (CollectionStatus.SUCCESS, CollectionStatus.FAILED)

    def can_transition_to(self, target: "CollectionStatus") -> bool:
        return self == CollectionStatus.PENDING and target.is_final()


class DisbursementStatus(str, Enum):
    """
    Platform-to-owner leg.

    `failed` goes back to `processing` only through an explicit retry.
    `not_required` is assigned at creation when the owner's share is zero.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    NOT_REQUIRED = "not_required"

    def is_final(self) -> bool:
        return self in (DisbursementStatus.COMPLETED, DisbursementStatus.NOT_REQUIRED)

    def can_transition_to(self, target: "DisbursementStatus") -> bool:
        return target in _DISBURSEMENT_TRANSITIONS[self]

    @classmethod
    def startable(cls) -> tuple["DisbursementStatus", ...]:
        """States from which a disbursement attempt may begin."""
        return (cls.PENDING, cls.FAILED)


_DISBURSEMENT_TRANSITIONS: dict[DisbursementStatus, frozenset[DisbursementStatus]] = {
    DisbursementStatus.PENDING: frozenset({DisbursementStatus.PROCESSING}),
    DisbursementStatus.PROCESSING: frozenset({DisbursementStatus.COMPLETED, DisbursementStatus.FAILED}),
    DisbursementStatus.FAILED: frozenset({DisbursementStatus.PROCESSING}),
    DisbursementStatus.COMPLETED: frozenset(),
    DisbursementStatus.NOT_REQUIRED: frozenset(),
}


class UserRole(str, Enum):
    TENANT = "tenant"
    OWNER = "owner"
    ADMIN = "admin"
