"""
Policy evaluation for booking times.
Checks a candidate reservation instant against the venue's temporal rules.
Pure functions only: callers supply the current instant.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from domain.enums import RejectionReason


@dataclass(frozen=True)
class PolicyDecision:
    """Accept, or reject with a reason code and a human-readable message."""
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None

    @classmethod
    def accept(cls) -> "PolicyDecision":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> "PolicyDecision":
        return cls(accepted=False, reason=reason, message=message)


def evaluate_booking_time(
    target: datetime,
    now: datetime,
    policy,
    original_start: Optional[datetime] = None,
) -> PolicyDecision:
    """
    Validate a reservation instant against a venue policy.

    Rules are applied in order: minimum advance, maximum advance, then the
    modification rules when ``original_start`` is given.

    Args:
        target: Aware datetime the reservation would start at
        now: Current aware datetime
        policy: Venue policy, or None when the venue has no rules
        original_start: Start of the reservation being modified, if any

    Returns:
        PolicyDecision
    """
    if policy is None:
        return PolicyDecision.accept()

    earliest = now + timedelta(minutes=policy.min_advance_minutes)
    if target < earliest:
        return PolicyDecision.reject(
            RejectionReason.TOO_SOON,
            f"Bookings must be made at least {policy.min_advance_minutes} minutes in advance",
        )

    latest = now + timedelta(days=policy.max_advance_days)
    if target > latest:
        return PolicyDecision.reject(
            RejectionReason.TOO_FAR_AHEAD,
            f"Bookings can only be made up to {policy.max_advance_days} days in advance",
        )

    if original_start is not None:
        if not policy.allow_modifications:
            return PolicyDecision.reject(
                RejectionReason.MODIFICATIONS_DISABLED,
                "Modifications are not allowed for this restaurant",
            )

        cutoff = now + timedelta(minutes=policy.modification_cutoff_minutes)
        if original_start < cutoff:
            return PolicyDecision.reject(
                RejectionReason.MODIFICATION_CUTOFF_PASSED,
                "Modification cutoff time has passed for this reservation",
            )

    return PolicyDecision.accept()
