"""
Quantity adjustment tests.

Tests cover:
- Proportional redistribution of an approved aggregate
- Approval guards (role, period status, bounds)
- Delivery dates
"""

import pytest
from datetime import date
from uuid import uuid4

from apps.ordering.models import OrderPeriod, PeriodStatus, RequestLine, RequestStatus
from apps.ordering.services import apply_approved_quantity, set_delivery_date
from apps.ordering.services.exceptions import (
    OrderingValidationError,
    QuantityExceedsDemandError,
    PeriodNotFoundError,
    ArticleNotFoundError,
    InsufficientPermissionsError,
    PeriodNotOpenError,
)


def validated(request):
    return request.lines.get().qty_validated


@pytest.mark.django_db
class TestApplyApprovedQuantity:

    def test_five_three_approved_six(self, admin_ctx, period, article_x, demand_5_3):
        request_a, request_b = demand_5_3

        allocation = apply_approved_quantity(
            admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=6
        )

        assert validated(request_a) == 4
        assert validated(request_b) == 2
        assert sum(allocation.values()) == 6

    def test_full_approval(self, admin_ctx, period, article_x, demand_5_3):
        request_a, request_b = demand_5_3

        apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=8)

        assert (validated(request_a), validated(request_b)) == (5, 3)

    def test_zero_approval(self, admin_ctx, period, article_x, demand_5_3):
        request_a, request_b = demand_5_3

        apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=0)

        assert (validated(request_a), validated(request_b)) == (0, 0)

    def test_reapproval_starts_from_requested_quantities(self, admin_ctx, period, article_x, demand_5_3):
        request_a, request_b = demand_5_3

        apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=2)
        apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=6)

        assert (validated(request_a), validated(request_b)) == (4, 2)

    def test_drafts_are_not_touched(self, admin_ctx, period, article_x, demand_5_3, make_request, member, circle_b):
        draft = make_request(member, circle_b, [(article_x, 10)], status=RequestStatus.DRAFT)

        apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=6)

        assert validated(draft) is None

    def test_no_demand_is_noop(self, admin_ctx, period, article_y, demand_5_3):
        assert apply_approved_quantity(
            admin_ctx, period_id=period.id, article_id=article_y.id, approved_qty=3
        ) == {}
        assert not RequestLine.objects.filter(qty_validated__isnull=False).exists()

    def test_above_demand_rejected(self, admin_ctx, period, article_x, demand_5_3):
        with pytest.raises(QuantityExceedsDemandError):
            apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=9)

    def test_negative_rejected(self, admin_ctx, period, article_x, demand_5_3):
        with pytest.raises(OrderingValidationError):
            apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=-1)

    def test_member_rejected(self, member_ctx, period, article_x, demand_5_3):
        with pytest.raises(InsufficientPermissionsError):
            apply_approved_quantity(member_ctx, period_id=period.id, article_id=article_x.id, approved_qty=6)

    def test_period_must_be_open(self, admin_ctx, period, article_x, demand_5_3):
        OrderPeriod.objects.filter(id=period.id).update(status=PeriodStatus.ORDERED)

        with pytest.raises(PeriodNotOpenError):
            apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=6)

    def test_unknown_period(self, admin_ctx, article_x):
        with pytest.raises(PeriodNotFoundError):
            apply_approved_quantity(admin_ctx, period_id=uuid4(), article_id=article_x.id, approved_qty=1)

    def test_seven_three_across_many_lines(
        self, admin_ctx, period, article_x, make_request, member, other_member, circle_a, circle_b
    ):
        request_a = make_request(member, circle_a, [(article_x, 7)])
        request_b = make_request(other_member, circle_b, [(article_x, 3)])

        apply_approved_quantity(admin_ctx, period_id=period.id, article_id=article_x.id, approved_qty=6)

        assert (validated(request_a), validated(request_b)) == (4, 2)


@pytest.mark.django_db
class TestSetDeliveryDate:

    def test_sets_date_on_contributing_lines(self, admin_ctx, period, article_x, demand_5_3):
        updated = set_delivery_date(
            admin_ctx, period_id=period.id, article_id=article_x.id, delivery_date=date(2025, 2, 3)
        )

        assert updated == 2
        assert set(RequestLine.objects.values_list('delivery_date', flat=True)) == {date(2025, 2, 3)}

    def test_clears_date(self, admin_ctx, period, article_x, demand_5_3):
        RequestLine.objects.update(delivery_date=date(2025, 2, 3))

        set_delivery_date(admin_ctx, period_id=period.id, article_id=article_x.id, delivery_date=None)

        assert set(RequestLine.objects.values_list('delivery_date', flat=True)) == {None}

    def test_member_rejected(self, member_ctx, period, article_x, demand_5_3):
        with pytest.raises(InsufficientPermissionsError):
            set_delivery_date(member_ctx, period_id=period.id, article_id=article_x.id, delivery_date=None)

    def test_unknown_article(self, admin_ctx, period, demand_5_3):
        with pytest.raises(ArticleNotFoundError):
            set_delivery_date(admin_ctx, period_id=period.id, article_id=uuid4(), delivery_date=None)

    def test_archived_period_rejected(self, admin_ctx, period, article_x, demand_5_3):
        OrderPeriod.objects.filter(id=period.id).update(status=PeriodStatus.ARCHIVED)

        with pytest.raises(PeriodNotOpenError):
            set_delivery_date(admin_ctx, period_id=period.id, article_id=article_x.id, delivery_date=None)
