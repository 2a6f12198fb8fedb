"""
Quantity adjustment and redistribution.

A FinAdmin approves an aggregate quantity per article; the approved
amount is split back over the contributing lines with largest-remainder
apportionment and written to ``qty_validated``.
"""

import logging
from datetime import date
from typing import Dict, Optional
from uuid import UUID

from django.db import transaction

from apps.catalog.models import Article
from apps.ordering.context import OrderingContext
from apps.ordering.models import OrderPeriod, PeriodStatus, RequestLine, RequestStatus

from .aggregation import load_demand_lines, sum_demand
from .apportionment import largest_remainder
from .exceptions import (
    OrderingValidationError,
    QuantityExceedsDemandError,
    PeriodNotFoundError,
    ArticleNotFoundError,
    InsufficientPermissionsError,
    PeriodNotOpenError,
)

logger = logging.getLogger(__name__)


def _require_finadmin(ctx: OrderingContext, action: str) -> None:
    if not ctx.is_finadmin:
        raise InsufficientPermissionsError(f"Only FinAdmin members can {action}")


def _lock_period(period_id: UUID) -> OrderPeriod:
    try:
        return OrderPeriod.objects.select_for_update().get(id=period_id)
    except OrderPeriod.DoesNotExist:
        raise PeriodNotFoundError(f"Period with ID {period_id} not found")


@transaction.atomic
def apply_approved_quantity(
    ctx: OrderingContext,
    *,
    period_id: UUID,
    article_id: UUID,
    approved_qty: int
) -> Dict[UUID, int]:
    """
    Approve an aggregate quantity for one article and redistribute it.

    Each contributing line gets ``approved_qty * qty_i / total`` floored,
    and the units lost to flooring go to the largest remainders. Ties go
    to the earlier line (request creation, then line creation).

    Args:
        ctx: Acting member and clock
        period_id: UUID of the open period
        article_id: UUID of the article
        approved_qty: Quantity actually ordered, 0 to total demand

    Returns:
        Mapping line id -> validated quantity. Empty when there is no
        demand for the article (nothing to redistribute).

    Raises:
        InsufficientPermissionsError: If actor is not a FinAdmin
        PeriodNotFoundError: If period doesn't exist
        PeriodNotOpenError: If period is no longer open
        OrderingValidationError: If approved_qty is negative
        QuantityExceedsDemandError: If approved_qty is above total demand
    """
    _require_finadmin(ctx, "approve quantities")
    period = _lock_period(period_id)
    if period.status != PeriodStatus.OPEN:
        raise PeriodNotOpenError(
            f"Quantities can only be approved while the period is open ({period.get_status_display()})"
        )
    if approved_qty is None or approved_qty < 0:
        raise OrderingValidationError("Approved quantity cannot be negative")

    rows = load_demand_lines(
        period_id=period.id,
        article_id=article_id,
        statuses=[RequestStatus.SUBMITTED],
    )
    demand = sum_demand(rows).get(article_id)
    if demand is None or demand.total_qty == 0:
        return {}

    if approved_qty > demand.total_qty:
        raise QuantityExceedsDemandError(
            f"Approved quantity {approved_qty} exceeds demand of {demand.total_qty}"
        )

    shares = largest_remainder([line.qty for line in demand.lines], approved_qty)
    allocation = {line.line_id: share for line, share in zip(demand.lines, shares)}

    lines = list(RequestLine.objects.filter(id__in=allocation.keys()))
    for line in lines:
        line.qty_validated = allocation[line.id]
    RequestLine.objects.bulk_update(lines, ['qty_validated'])

    logger.info(
        "Approved %d of %d for article %s in period %s (%d lines)",
        approved_qty, demand.total_qty, article_id, period.name, len(lines),
    )
    return allocation


@transaction.atomic
def set_delivery_date(
    ctx: OrderingContext,
    *,
    period_id: UUID,
    article_id: UUID,
    delivery_date: Optional[date]
) -> int:
    """
    Set or clear the expected delivery date of an article's lines.

    Reception groups lines by this date, so one order can arrive in
    several shipments.

    Returns:
        Number of lines updated

    Raises:
        InsufficientPermissionsError: If actor is not a FinAdmin
        PeriodNotFoundError: If period doesn't exist
        ArticleNotFoundError: If article doesn't exist
        PeriodNotOpenError: If period is archived
    """
    _require_finadmin(ctx, "set delivery dates")
    period = _lock_period(period_id)
    if period.status == PeriodStatus.ARCHIVED:
        raise PeriodNotOpenError("Archived periods cannot be changed")
    if not Article.objects.filter(id=article_id).exists():
        raise ArticleNotFoundError(f"Article with ID {article_id} not found")

    updated = (
        RequestLine.objects
        .filter(request__period=period, article_id=article_id)
        .exclude(request__status=RequestStatus.DRAFT)
        .update(delivery_date=delivery_date)
    )
    logger.info(
        "Delivery date for article %s in period %s set to %s (%d lines)",
        article_id, period.name, delivery_date, updated,
    )
    return updated
