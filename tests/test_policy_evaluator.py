"""Unit tests for booking-time policy evaluation."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import pytz

from domain.enums import RejectionReason
from services.policy_evaluator import evaluate_booking_time


NOW = datetime(2025, 6, 2, 9, 0, tzinfo=pytz.utc)


def make_policy(**overrides):
    values = dict(
        min_advance_minutes=60,
        max_advance_days=30,
        allow_modifications=True,
        modification_cutoff_minutes=120,
        auto_confirm=True,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.unit
class TestAdvanceWindow:
    """Minimum and maximum advance rules."""

    def test_no_policy_accepts_anything(self):
        """Test a venue without a policy accepts any instant."""
        decision = evaluate_booking_time(NOW - timedelta(days=1), NOW, None)

        assert decision.accepted is True
        assert decision.reason is None

    def test_too_soon(self):
        """Test booking inside the minimum advance is rejected."""
        decision = evaluate_booking_time(NOW + timedelta(minutes=30), NOW, make_policy())

        assert decision.accepted is False
        assert decision.reason == RejectionReason.TOO_SOON
        assert decision.message == "Bookings must be made at least 60 minutes in advance"

    def test_exactly_minimum_advance_is_accepted(self):
        """Test the minimum advance boundary is inclusive."""
        decision = evaluate_booking_time(NOW + timedelta(minutes=60), NOW, make_policy())

        assert decision.accepted is True

    def test_too_far_ahead(self):
        """Test booking beyond the maximum advance is rejected."""
        decision = evaluate_booking_time(NOW + timedelta(days=31), NOW, make_policy())

        assert decision.reason == RejectionReason.TOO_FAR_AHEAD
        assert "30 days" in decision.message

    def test_exactly_maximum_advance_is_accepted(self):
        """Test the maximum advance boundary is inclusive."""
        decision = evaluate_booking_time(NOW + timedelta(days=30), NOW, make_policy())

        assert decision.accepted is True

    def test_compares_instants_across_timezones(self):
        """Test targets in the venue timezone are compared as instants."""
        bratislava = pytz.timezone("Europe/Bratislava")
        # 10:30 local in June is 08:30 UTC, already in the past
        target = bratislava.localize(datetime(2025, 6, 2, 10, 30))

        decision = evaluate_booking_time(target, NOW, make_policy(min_advance_minutes=0))

        assert decision.reason == RejectionReason.TOO_SOON


@pytest.mark.unit
class TestModificationRules:
    """Rules applied only when an existing reservation is moved."""

    def test_modifications_disabled(self):
        """Test modification is rejected when the venue disallows it."""
        decision = evaluate_booking_time(
            NOW + timedelta(days=2),
            NOW,
            make_policy(allow_modifications=False),
            original_start=NOW + timedelta(days=1),
        )

        assert decision.reason == RejectionReason.MODIFICATIONS_DISABLED

    def test_cutoff_measured_from_original_start(self):
        """Test the cutoff uses the original start, not the new one."""
        decision = evaluate_booking_time(
            NOW + timedelta(days=2),
            NOW,
            make_policy(modification_cutoff_minutes=120),
            original_start=NOW + timedelta(minutes=90),
        )

        assert decision.reason == RejectionReason.MODIFICATION_CUTOFF_PASSED

    def test_modification_before_cutoff_is_accepted(self):
        """Test modifying well ahead of the original start passes."""
        decision = evaluate_booking_time(
            NOW + timedelta(days=2),
            NOW,
            make_policy(),
            original_start=NOW + timedelta(hours=3),
        )

        assert decision.accepted is True

    def test_advance_rules_checked_first(self):
        """Test a too-soon target wins over a passed cutoff."""
        decision = evaluate_booking_time(
            NOW + timedelta(minutes=10),
            NOW,
            make_policy(allow_modifications=False),
            original_start=NOW + timedelta(minutes=30),
        )

        assert decision.reason == RejectionReason.TOO_SOON
