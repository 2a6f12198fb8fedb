"""
Request ledger tests.

Tests cover:
- Cart validation and create-or-replace semantics
- Draft-only line edits
- Visibility of requests
"""

import pytest
from uuid import uuid4

from apps.circles.models import CircleMembership
from apps.ordering.context import OrderingContext
from apps.ordering.models import CircleRequest, OrderPeriod, PeriodStatus, RequestLine, RequestStatus
from apps.ordering.services import (
    LineInput,
    upsert_request,
    replace_lines,
    set_line_quantity,
    submit_cart,
    visible_requests,
)
from apps.ordering.services.exceptions import (
    OrderingValidationError,
    EmptyCartError,
    CircleNotFoundError,
    ArticleNotFoundError,
    RequestNotFoundError,
    LineNotFoundError,
    NotCircleMemberError,
    InsufficientPermissionsError,
    RequestNotDraftError,
    PeriodNotOpenError,
)


@pytest.mark.django_db
class TestSubmitCart:

    def test_creates_draft_request_in_current_period(self, member_ctx, circle_a, period, article_x, article_y):
        request = submit_cart(
            member_ctx,
            circle_id=circle_a.id,
            lines=[LineInput(article_x.id, 5), LineInput(article_y.id, 2)],
        )

        assert request.status == RequestStatus.DRAFT
        assert request.period_id == period.id
        assert request.created_by == member_ctx.actor
        assert {(l.article_id, l.qty) for l in request.lines.all()} == {
            (article_x.id, 5),
            (article_y.id, 2),
        }

    def test_resubmission_replaces_lines_of_same_request(self, member_ctx, circle_a, article_x, article_y):
        first = submit_cart(member_ctx, circle_id=circle_a.id, lines=[LineInput(article_x.id, 5)])
        second = submit_cart(member_ctx, circle_id=circle_a.id, lines=[LineInput(article_y.id, 1)])

        assert first.id == second.id
        assert CircleRequest.objects.count() == 1
        assert list(second.lines.values_list('article_id', 'qty')) == [(article_y.id, 1)]

    def test_one_request_per_member(self, member_ctx, member, circle_a, article_x, outsider):
        CircleMembership.objects.create(user=outsider, circle=circle_a)
        submit_cart(member_ctx, circle_id=circle_a.id, lines=[LineInput(article_x.id, 1)])
        submit_cart(OrderingContext(actor=outsider), circle_id=circle_a.id, lines=[LineInput(article_x.id, 2)])

        assert CircleRequest.objects.filter(circle=circle_a).count() == 2

    def test_circle_required(self, member_ctx, article_x):
        with pytest.raises(OrderingValidationError):
            submit_cart(member_ctx, circle_id=None, lines=[LineInput(article_x.id, 1)])

    def test_empty_cart(self, member_ctx, circle_a):
        with pytest.raises(EmptyCartError):
            submit_cart(member_ctx, circle_id=circle_a.id, lines=[])

    def test_unknown_circle(self, member_ctx, article_x):
        with pytest.raises(CircleNotFoundError):
            submit_cart(member_ctx, circle_id=uuid4(), lines=[LineInput(article_x.id, 1)])

    def test_not_a_member(self, member_ctx, circle_b, article_x):
        with pytest.raises(NotCircleMemberError):
            submit_cart(member_ctx, circle_id=circle_b.id, lines=[LineInput(article_x.id, 1)])

    def test_inactive_article(self, member_ctx, circle_a, inactive_article):
        with pytest.raises(ArticleNotFoundError):
            submit_cart(member_ctx, circle_id=circle_a.id, lines=[LineInput(inactive_article.id, 1)])
        assert not CircleRequest.objects.exists()

    def test_duplicate_article(self, member_ctx, circle_a, article_x):
        with pytest.raises(OrderingValidationError):
            submit_cart(
                member_ctx,
                circle_id=circle_a.id,
                lines=[LineInput(article_x.id, 1), LineInput(article_x.id, 2)],
            )

    def test_non_positive_quantity(self, member_ctx, circle_a, article_x):
        with pytest.raises(OrderingValidationError):
            submit_cart(member_ctx, circle_id=circle_a.id, lines=[LineInput(article_x.id, 0)])

    def test_submitted_request_is_not_replaced(self, member_ctx, circle_a, article_x, article_y, make_request, member):
        request = make_request(member, circle_a, [(article_x, 5)], status=RequestStatus.SUBMITTED)

        with pytest.raises(RequestNotDraftError):
            submit_cart(member_ctx, circle_id=circle_a.id, lines=[LineInput(article_y.id, 1)])

        assert list(request.lines.values_list('article_id', 'qty')) == [(article_x.id, 5)]

    def test_current_period_not_open(self, member_ctx, circle_a, period, article_x):
        OrderPeriod.objects.filter(id=period.id).update(status=PeriodStatus.ORDERED)

        with pytest.raises(PeriodNotOpenError):
            submit_cart(member_ctx, circle_id=circle_a.id, lines=[LineInput(article_x.id, 1)])


@pytest.mark.django_db
class TestReplaceLines:

    def test_upsert_returns_existing_request(self, member_ctx, circle_a, period):
        first = upsert_request(member_ctx, circle=circle_a, period=period)
        second = upsert_request(member_ctx, circle=circle_a, period=period)

        assert first.id == second.id
        assert first.status == RequestStatus.DRAFT

    def test_replace_lines_on_draft(self, member_ctx, member, circle_a, article_x, article_y, make_request):
        request = make_request(member, circle_a, [(article_x, 5)], status=RequestStatus.DRAFT)

        lines = replace_lines(member_ctx, request_id=request.id, lines=[LineInput(article_y.id, 3)])

        assert len(lines) == 1
        assert list(request.lines.values_list('article_id', 'qty')) == [(article_y.id, 3)]

    def test_replace_lines_rejected_on_validated_request(self, member_ctx, member, circle_a, article_x, make_request):
        request = make_request(member, circle_a, [(article_x, 5)], status=RequestStatus.VALIDATED)
        request.lines.update(qty_validated=4)

        with pytest.raises(RequestNotDraftError):
            replace_lines(member_ctx, request_id=request.id, lines=[LineInput(article_x.id, 1)])

        line = request.lines.get()
        assert (line.qty, line.qty_validated) == (5, 4)

    def test_other_member_cannot_replace(self, other_ctx, member, circle_a, article_x, make_request):
        request = make_request(member, circle_a, [(article_x, 5)], status=RequestStatus.DRAFT)

        with pytest.raises(InsufficientPermissionsError):
            replace_lines(other_ctx, request_id=request.id, lines=[LineInput(article_x.id, 1)])

    def test_unknown_request(self, member_ctx, article_x):
        with pytest.raises(RequestNotFoundError):
            replace_lines(member_ctx, request_id=uuid4(), lines=[LineInput(article_x.id, 1)])


@pytest.mark.django_db
class TestSetLineQuantity:

    @pytest.fixture
    def draft_line(self, member, circle_a, article_x, make_request):
        request = make_request(member, circle_a, [(article_x, 5)], status=RequestStatus.DRAFT)
        return request.lines.get()

    def test_update_quantity(self, member_ctx, draft_line):
        line = set_line_quantity(member_ctx, line_id=draft_line.id, qty=8)

        assert line.qty == 8
        draft_line.refresh_from_db()
        assert draft_line.qty == 8

    def test_zero_deletes_line(self, member_ctx, draft_line):
        assert set_line_quantity(member_ctx, line_id=draft_line.id, qty=0) is None
        assert not RequestLine.objects.filter(id=draft_line.id).exists()

    def test_negative_rejected(self, member_ctx, draft_line):
        with pytest.raises(OrderingValidationError):
            set_line_quantity(member_ctx, line_id=draft_line.id, qty=-1)

    def test_submitted_line_rejected(self, member_ctx, draft_line):
        CircleRequest.objects.filter(id=draft_line.request_id).update(status=RequestStatus.SUBMITTED)

        with pytest.raises(RequestNotDraftError):
            set_line_quantity(member_ctx, line_id=draft_line.id, qty=2)

    def test_other_member_rejected(self, other_ctx, draft_line):
        with pytest.raises(InsufficientPermissionsError):
            set_line_quantity(other_ctx, line_id=draft_line.id, qty=2)

    def test_finadmin_may_edit(self, admin_ctx, draft_line):
        assert set_line_quantity(admin_ctx, line_id=draft_line.id, qty=2).qty == 2

    def test_unknown_line(self, member_ctx):
        with pytest.raises(LineNotFoundError):
            set_line_quantity(member_ctx, line_id=uuid4(), qty=2)


@pytest.mark.django_db
class TestVisibleRequests:

    def test_empty_request_is_not_displayed(self, member_ctx, member, circle_a, article_x, make_request):
        request = make_request(member, circle_a, [(article_x, 5)], status=RequestStatus.DRAFT)
        assert list(visible_requests(member_ctx)) == [request]

        set_line_quantity(member_ctx, line_id=request.lines.get().id, qty=0)

        assert list(visible_requests(member_ctx)) == []
        assert CircleRequest.objects.filter(id=request.id).exists()

    def test_members_see_their_circles_only(
        self, member_ctx, other_ctx, admin_ctx, member, other_member, circle_a, circle_b, article_x, make_request
    ):
        request_a = make_request(member, circle_a, [(article_x, 5)])
        request_b = make_request(other_member, circle_b, [(article_x, 3)])

        assert list(visible_requests(member_ctx)) == [request_a]
        assert list(visible_requests(other_ctx)) == [request_b]
        assert set(visible_requests(admin_ctx)) == {request_a, request_b}

    def test_filters(self, admin_ctx, member, other_member, circle_a, circle_b, article_x, make_request):
        request_a = make_request(member, circle_a, [(article_x, 5)], status=RequestStatus.DRAFT)
        request_b = make_request(other_member, circle_b, [(article_x, 3)])

        assert list(visible_requests(admin_ctx, circle_id=circle_a.id)) == [request_a]
        assert list(visible_requests(admin_ctx, statuses=[RequestStatus.SUBMITTED])) == [request_b]
        assert list(visible_requests(admin_ctx, period_id=uuid4())) == []
