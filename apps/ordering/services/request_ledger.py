"""
Request ledger.

One CircleRequest per (circle, period, member) holds the member's cart.
Lines are replaced wholesale on each cart validation and may be edited
one by one while the request is still a draft.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from django.db import transaction, IntegrityError
from django.db.models import Count, QuerySet

from apps.catalog.models import Article
from apps.circles.models import Circle
from apps.circles.services import is_circle_member
from apps.ordering.context import OrderingContext
from apps.ordering.models import (
    CircleRequest,
    OrderPeriod,
    RequestLine,
    RequestStatus,
)

from .exceptions import (
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
from .period_clock import get_current_period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineInput:
    article_id: UUID
    qty: int


def _check_can_edit(ctx: OrderingContext, request: CircleRequest) -> None:
    if request.created_by_id != ctx.actor.id and not ctx.is_finadmin:
        raise InsufficientPermissionsError("Only the request creator can edit its lines")


def _validate_lines(lines: Sequence[LineInput]) -> None:
    seen = set()
    for line in lines:
        if line.qty is None or line.qty <= 0:
            raise OrderingValidationError("Quantities must be positive")
        if line.article_id in seen:
            raise OrderingValidationError(f"Article {line.article_id} appears twice in the cart")
        seen.add(line.article_id)

    article_ids = {line.article_id for line in lines}
    found = set(
        Article.objects
        .filter(id__in=article_ids, active=True)
        .values_list('id', flat=True)
    )
    missing = article_ids - found
    if missing:
        raise ArticleNotFoundError(
            f"Unknown or inactive article(s): {', '.join(sorted(str(m) for m in missing))}"
        )


def upsert_request(
    ctx: OrderingContext,
    *,
    circle: Circle,
    period: OrderPeriod
) -> CircleRequest:
    """
    Return the actor's request for (circle, period), creating a draft if absent.

    An existing request is returned whatever its status; callers that
    write lines get RequestNotDraftError from ``replace_lines``.

    Args:
        ctx: Acting member and clock
        circle: Circle the cart is for
        period: Target period

    Returns:
        CircleRequest instance
    """
    request = CircleRequest.objects.filter(
        circle=circle, period=period, created_by=ctx.actor
    ).first()
    if request is not None:
        return request

    try:
        with transaction.atomic():
            request = CircleRequest.objects.create(
                circle=circle,
                period=period,
                created_by=ctx.actor,
                status=RequestStatus.DRAFT,
            )
    except IntegrityError:
        return CircleRequest.objects.get(circle=circle, period=period, created_by=ctx.actor)

    logger.info(
        "Draft request %s created for circle %s in period %s",
        request.id, circle.name, period.name,
    )
    return request


@transaction.atomic
def replace_lines(
    ctx: OrderingContext,
    *,
    request_id: UUID,
    lines: Sequence[LineInput]
) -> List[RequestLine]:
    """
    Replace every line of a draft request with ``lines``.

    Args:
        ctx: Acting member and clock
        request_id: UUID of the request
        lines: New cart content

    Returns:
        Created RequestLine instances in cart order

    Raises:
        RequestNotFoundError: If request doesn't exist
        InsufficientPermissionsError: If actor is neither creator nor FinAdmin
        RequestNotDraftError: If request is no longer a draft
        OrderingValidationError: On invalid quantities or duplicate articles
        ArticleNotFoundError: On unknown or inactive article
    """
    try:
        request = CircleRequest.objects.select_for_update().get(id=request_id)
    except CircleRequest.DoesNotExist:
        raise RequestNotFoundError(f"Request with ID {request_id} not found")

    _check_can_edit(ctx, request)
    if not request.is_draft:
        raise RequestNotDraftError(
            f"Request is {request.get_status_display().lower()}, lines can no longer be replaced"
        )
    _validate_lines(lines)

    request.lines.all().delete()
    created = [
        RequestLine.objects.create(request=request, article_id=line.article_id, qty=line.qty)
        for line in lines
    ]
    request.save(update_fields=['updated_at'])

    logger.info("Request %s lines replaced (%d lines)", request.id, len(created))
    return created


@transaction.atomic
def set_line_quantity(
    ctx: OrderingContext,
    *,
    line_id: UUID,
    qty: int
) -> Optional[RequestLine]:
    """
    Live cart edit. Zero deletes the line.

    Returns:
        Updated line, or None when the line was deleted

    Raises:
        LineNotFoundError: If line doesn't exist
        InsufficientPermissionsError: If actor is neither creator nor FinAdmin
        RequestNotDraftError: If the owning request is no longer a draft
        OrderingValidationError: If qty is negative
    """
    try:
        line = (
            RequestLine.objects
            .select_for_update()
            .select_related('request')
            .get(id=line_id)
        )
    except RequestLine.DoesNotExist:
        raise LineNotFoundError(f"Line with ID {line_id} not found")

    _check_can_edit(ctx, line.request)
    if not line.request.is_draft:
        raise RequestNotDraftError("Lines of a submitted request cannot be edited")
    if qty is None or qty < 0:
        raise OrderingValidationError("Quantity cannot be negative")

    if qty == 0:
        line.delete()
        return None

    line.qty = qty
    line.save(update_fields=['qty'])
    return line


def submit_cart(
    ctx: OrderingContext,
    *,
    circle_id: Optional[UUID],
    lines: Sequence[LineInput]
) -> CircleRequest:
    """
    Validate the member's cart into the current period.

    Everything is checked before the first write: circle selected and
    joined, cart not empty, articles known and active, quantities
    positive. The request stays a draft until submitted.

    Args:
        ctx: Acting member and clock
        circle_id: Circle the cart is for
        lines: Cart content

    Returns:
        The member's CircleRequest for the current period

    Raises:
        OrderingValidationError: If no circle is selected
        EmptyCartError: If the cart is empty
        CircleNotFoundError: If circle doesn't exist
        NotCircleMemberError: If actor is not in the circle
        RequestNotDraftError: If the request was already submitted
        PeriodNotOpenError: If the current period is no longer open
    """
    if not circle_id:
        raise OrderingValidationError("Select a circle before validating the cart")
    if not lines:
        raise EmptyCartError("The cart is empty")

    try:
        circle = Circle.objects.get(id=circle_id)
    except Circle.DoesNotExist:
        raise CircleNotFoundError(f"Circle with ID {circle_id} not found")

    if not is_circle_member(user=ctx.actor, circle_id=circle.id):
        raise NotCircleMemberError(f"You are not a member of {circle.name}")

    _validate_lines(lines)

    with transaction.atomic():
        period = get_current_period(ctx)
        if not period.is_open:
            raise PeriodNotOpenError(f"Period {period.name} no longer accepts requests")
        request = upsert_request(ctx, circle=circle, period=period)
        replace_lines(ctx, request_id=request.id, lines=lines)

    request.refresh_from_db()
    return request


def visible_requests(
    ctx: OrderingContext,
    *,
    period_id: Optional[UUID] = None,
    circle_id: Optional[UUID] = None,
    statuses: Optional[Iterable[str]] = None
) -> QuerySet[CircleRequest]:
    """
    Requests the actor may see, without the empty ones.

    FinAdmins see every circle; other members see their own circles.
    A request whose lines were all removed is not displayed.
    """
    requests = (
        CircleRequest.objects
        .select_related('circle', 'period', 'created_by')
        .annotate(line_count=Count('lines'))
        .filter(line_count__gt=0)
    )
    if not ctx.is_finadmin:
        requests = requests.filter(circle__in=Circle.objects.filter(memberships__user=ctx.actor))
    if period_id:
        requests = requests.filter(period_id=period_id)
    if circle_id:
        requests = requests.filter(circle_id=circle_id)
    if statuses:
        requests = requests.filter(status__in=list(statuses))
    return requests.order_by('created_at')
