"""
Period clock tests.

Tests cover:
- Half-month window boundaries and labels
- Idempotent period creation
- Manual period creation (FinAdmin)
- The ensure_periods command
"""

import pytest
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock, patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone
from hypothesis import given, strategies as st

from apps.ordering.context import OrderingContext
from apps.ordering.models import OrderPeriod, PeriodStatus
from apps.ordering.services import (
    current_period_window,
    next_period_window,
    ensure_period_exists,
    get_current_period,
    ensure_upcoming_periods,
    create_period,
    list_periods,
)
from apps.ordering.services.exceptions import (
    OrderingValidationError,
    InsufficientPermissionsError,
    DuplicatePeriodError,
)


def at(year, month, day, hour=12):
    return timezone.make_aware(datetime(year, month, day, hour, 0))


# =============================================================================
# Windows
# =============================================================================

class TestPeriodWindows:

    def test_first_half_of_month(self):
        window = current_period_window(date(2025, 1, 10))

        assert window.start == date(2025, 1, 1)
        assert window.end == date(2025, 1, 15)
        assert window.name == '01 janv. - 15 janv. 2025'

    def test_fifteenth_is_first_half(self):
        assert current_period_window(date(2025, 3, 15)).end == date(2025, 3, 15)

    def test_second_half_ends_on_last_day(self):
        window = current_period_window(date(2025, 1, 16))

        assert window.start == date(2025, 1, 16)
        assert window.end == date(2025, 1, 31)
        assert window.name == '16 janv. - 31 janv. 2025'

    def test_leap_february(self):
        assert current_period_window(date(2024, 2, 20)).name == '16 févr. - 29 févr. 2024'

    def test_month_labels_do_not_depend_on_locale(self):
        assert current_period_window(date(2025, 8, 3)).name == '01 août - 15 août 2025'
        assert current_period_window(date(2025, 12, 31)).name == '16 déc. - 31 déc. 2025'

    def test_next_window_in_same_month(self):
        assert next_period_window(date(2025, 1, 10)).name == '16 janv. - 31 janv. 2025'

    def test_next_window_crosses_year(self):
        window = next_period_window(date(2025, 12, 20))

        assert window.start == date(2026, 1, 1)
        assert window.name == '01 janv. - 15 janv. 2026'

    @given(st.dates(min_value=date(2000, 1, 1), max_value=date(2099, 12, 31)))
    def test_every_day_of_a_half_month_has_the_same_name(self, day):
        window = current_period_window(day)

        assert window.start <= day <= window.end
        assert current_period_window(window.start).name == window.name
        assert current_period_window(window.end).name == window.name

    @given(st.dates(min_value=date(2000, 1, 1), max_value=date(2099, 12, 31)))
    def test_consecutive_windows_have_different_names(self, day):
        current = current_period_window(day)
        upcoming = next_period_window(day)

        assert upcoming.start == current.end + timedelta(days=1)
        assert upcoming.name != current.name


# =============================================================================
# Period rows
# =============================================================================

@pytest.mark.django_db
class TestEnsurePeriodExists:

    def test_creates_open_period_with_cutoff_at_window_end(self):
        period = ensure_period_exists(current_period_window(date(2025, 1, 10)))

        assert period.name == '01 janv. - 15 janv. 2025'
        assert period.status == PeriodStatus.OPEN
        assert period.cutoff_date == date(2025, 1, 15)

    def test_idempotent(self):
        window = current_period_window(date(2025, 1, 10))

        first = ensure_period_exists(window)
        second = ensure_period_exists(window)

        assert first.id == second.id
        assert OrderPeriod.objects.filter(name=window.name).count() == 1

    def test_returns_existing_period_whatever_its_status(self):
        window = current_period_window(date(2025, 1, 10))
        period = ensure_period_exists(window)
        OrderPeriod.objects.filter(id=period.id).update(status=PeriodStatus.ORDERED)

        assert ensure_period_exists(window).status == PeriodStatus.ORDERED

    def test_concurrent_insert_returns_winner_row(self):
        """A losing insert hits the unique name and returns the existing row."""
        window = current_period_window(date(2025, 1, 10))
        winner = OrderPeriod.objects.create(name=window.name, cutoff_date=window.end)

        # Lookup misses, as if the other insert had not committed yet
        empty = MagicMock()
        empty.first.return_value = None
        with patch.object(OrderPeriod.objects, 'filter', return_value=empty):
            period = ensure_period_exists(window)

        assert period.id == winner.id
        assert OrderPeriod.objects.filter(name=window.name).count() == 1

    def test_get_current_period_uses_context_clock(self, member):
        period = get_current_period(OrderingContext(actor=member, now=at(2025, 2, 20)))

        assert period.name == '16 févr. - 28 févr. 2025'

    def test_ensure_upcoming_periods(self, member):
        current, upcoming = ensure_upcoming_periods(
            OrderingContext(actor=member, now=at(2025, 1, 31))
        )

        assert current.name == '16 janv. - 31 janv. 2025'
        assert upcoming.name == '01 févr. - 15 févr. 2025'
        assert OrderPeriod.objects.count() == 2

        ensure_upcoming_periods(OrderingContext(actor=member, now=at(2025, 1, 20)))
        assert OrderPeriod.objects.count() == 2


@pytest.mark.django_db
class TestCreatePeriod:

    def test_finadmin_creates_period(self, admin_ctx):
        period = create_period(admin_ctx, name='Période spéciale', cutoff_date=date(2025, 5, 3))

        assert period.status == PeriodStatus.OPEN
        assert period.cutoff_date == date(2025, 5, 3)

    def test_member_cannot_create_period(self, member_ctx):
        with pytest.raises(InsufficientPermissionsError):
            create_period(member_ctx, name='Période', cutoff_date=date(2025, 5, 3))

    def test_name_and_cutoff_required(self, admin_ctx):
        with pytest.raises(OrderingValidationError):
            create_period(admin_ctx, name='  ', cutoff_date=date(2025, 5, 3))
        with pytest.raises(OrderingValidationError):
            create_period(admin_ctx, name='Période', cutoff_date=None)

    def test_duplicate_name_rejected(self, admin_ctx):
        create_period(admin_ctx, name='Période', cutoff_date=date(2025, 5, 3))

        with pytest.raises(DuplicatePeriodError):
            create_period(admin_ctx, name='Période', cutoff_date=date(2025, 6, 3))


@pytest.mark.django_db
class TestListPeriods:

    def test_archived_hidden_by_default(self):
        OrderPeriod.objects.create(name='A', cutoff_date=date(2025, 1, 15))
        OrderPeriod.objects.create(name='B', cutoff_date=date(2025, 1, 31), status=PeriodStatus.ARCHIVED)
        OrderPeriod.objects.create(name='C', cutoff_date=date(2025, 2, 15), status=PeriodStatus.CLOSED)

        assert [p.name for p in list_periods()] == ['C', 'A']
        assert [p.name for p in list_periods(include_archived=True)] == ['C', 'B', 'A']


@pytest.mark.django_db
class TestEnsurePeriodsCommand:

    def test_creates_current_and_next(self):
        call_command('ensure_periods', '--date', '2025-01-14')

        assert set(OrderPeriod.objects.values_list('name', flat=True)) == {
            '01 janv. - 15 janv. 2025',
            '16 janv. - 31 janv. 2025',
        }

    def test_invalid_date(self):
        with pytest.raises(CommandError):
            call_command('ensure_periods', '--date', '14/01/2025')
