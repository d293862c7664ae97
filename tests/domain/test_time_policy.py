"""
Tests for the time policy (``claims_kernel.domain.time_policy``).

Covers urgency -> duration lookup, urgency coercion, document type ->
authority level, and the warning-window test for dates and datetimes.
"""

from datetime import date, datetime, timedelta, timezone

from hypothesis import given
from hypothesis import strategies as st

from claims_kernel.domain.time_policy import (
    DEFAULT_URGENCY_DURATION,
    AuthorityLevel,
    Urgency,
    coerce_urgency,
    duration_for_urgency,
    is_within_window,
    required_approval_level,
)

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestDurationForUrgency:
    """Deadline tiers."""

    def test_urgent_is_24_hours(self):
        assert duration_for_urgency(Urgency.URGENT) == timedelta(hours=24)

    def test_high_is_3_days(self):
        assert duration_for_urgency("high") == timedelta(days=3)

    def test_normal_is_7_days(self):
        assert duration_for_urgency(Urgency.NORMAL) == timedelta(days=7)

    def test_low_gets_default(self):
        assert duration_for_urgency(Urgency.LOW) == timedelta(days=14)

    def test_none_gets_default(self):
        assert duration_for_urgency(None) == DEFAULT_URGENCY_DURATION

    def test_unknown_gets_default_not_error(self):
        assert duration_for_urgency("whenever") == timedelta(days=14)

    def test_custom_table(self):
        table = {"urgent": timedelta(hours=4)}
        assert duration_for_urgency("urgent", table) == timedelta(hours=4)
        assert duration_for_urgency("high", table, timedelta(days=1)) == timedelta(days=1)

    @given(st.text(max_size=20))
    def test_any_string_gets_a_positive_duration(self, value):
        assert duration_for_urgency(value) > timedelta(0)


class TestCoerceUrgency:

    def test_member_passthrough(self):
        assert coerce_urgency(Urgency.HIGH) is Urgency.HIGH

    def test_string_value(self):
        assert coerce_urgency("urgent") is Urgency.URGENT

    def test_none_is_normal(self):
        assert coerce_urgency(None) is Urgency.NORMAL

    def test_unknown_is_low(self):
        assert coerce_urgency("asap!!") is Urgency.LOW

    @given(st.text(max_size=20))
    def test_coerced_duration_matches_raw_duration(self, value):
        assert duration_for_urgency(coerce_urgency(value)) == duration_for_urgency(value)


class TestRequiredApprovalLevel:
    """Document type -> authority level table."""

    def test_contract_and_quote_need_manager(self):
        assert required_approval_level("Contract") == AuthorityLevel.MANAGER
        assert required_approval_level("Quote") == AuthorityLevel.MANAGER

    def test_invoice_needs_finance(self):
        assert required_approval_level("Invoice") == AuthorityLevel.FINANCE

    def test_policy_and_claims_documents_need_director(self):
        assert required_approval_level("Policy Document") == AuthorityLevel.DIRECTOR
        assert required_approval_level("Claims Document") == AuthorityLevel.DIRECTOR

    def test_certificates_and_drawings_need_specialist(self):
        assert required_approval_level("Certificate") == AuthorityLevel.SPECIALIST
        assert required_approval_level("Technical Drawing") == AuthorityLevel.SPECIALIST

    def test_unknown_type_is_standard(self):
        assert required_approval_level("Photograph") == AuthorityLevel.STANDARD
        assert required_approval_level(None) == AuthorityLevel.STANDARD


class TestIsWithinWindow:
    """``target <= now + window``."""

    def test_date_inside_window(self):
        assert is_within_window(date(2024, 1, 11), NOW, timedelta(days=30))

    def test_date_outside_window(self):
        assert not is_within_window(date(2024, 1, 11), NOW, timedelta(days=5))

    def test_boundary_is_inclusive(self):
        assert is_within_window(date(2024, 1, 31), NOW, timedelta(days=30))
        assert not is_within_window(date(2024, 2, 1), NOW, timedelta(days=30))

    def test_past_dates_are_inside(self):
        assert is_within_window(date(2023, 6, 1), NOW, timedelta(days=30))

    def test_datetime_targets(self):
        assert is_within_window(NOW + timedelta(hours=1), NOW, timedelta(hours=1))
        assert not is_within_window(NOW + timedelta(hours=2), NOW, timedelta(hours=1))

    def test_none_is_never_inside(self):
        assert not is_within_window(None, NOW)

    @given(st.integers(min_value=0, max_value=365), st.integers(min_value=-400, max_value=400))
    def test_matches_day_arithmetic(self, window_days, offset_days):
        target = NOW.date() + timedelta(days=offset_days)
        expected = offset_days <= window_days
        assert is_within_window(target, NOW, timedelta(days=window_days)) is expected
