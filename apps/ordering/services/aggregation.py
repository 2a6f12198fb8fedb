"""
Aggregation engine.

Rolls the non-draft lines of a period up into per-article demand. Rows
are read once into plain dataclasses; the roll-up itself is a pure
function so it can be checked against generated line sets.

Nothing here writes. Every figure is re-derived from the ledger on each
call.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from apps.ordering.models import OrderPeriod, RequestLine, RequestStatus

from .exceptions import PeriodNotFoundError


@dataclass(frozen=True)
class DemandLine:
    """One contributing request line, as read from the store."""
    line_id: UUID
    request_id: UUID
    circle_id: UUID
    article_id: UUID
    qty: int
    qty_validated: Optional[int] = None
    unit_price: Decimal = Decimal('0.00')
    request_status: str = RequestStatus.SUBMITTED
    request_created_at: Optional[datetime] = None
    line_created_at: Optional[datetime] = None

    @property
    def effective_qty(self) -> int:
        return self.qty if self.qty_validated is None else self.qty_validated

    @property
    def sort_key(self) -> Tuple:
        # Original line order; also the apportionment tie-break
        return (
            self.request_created_at is not None, self.request_created_at or 0,
            self.line_created_at is not None, self.line_created_at or 0,
            str(self.line_id),
        )


@dataclass(frozen=True)
class ArticleDemand:
    article_id: UUID
    total_qty: int
    lines: Tuple[DemandLine, ...] = field(default_factory=tuple)

    @property
    def approved_qty(self) -> Optional[int]:
        """Sum of validated quantities, or None while no line was approved."""
        if all(line.qty_validated is None for line in self.lines):
            return None
        return sum(line.effective_qty for line in self.lines)

    @property
    def is_confirmed(self) -> bool:
        return all(line.qty_validated is not None for line in self.lines)


@dataclass(frozen=True)
class CircleArticleDemand:
    circle_id: UUID
    circle_name: str
    article_id: UUID
    article_label: str
    qty: int
    effective_qty: int


def _to_demand_line(line: RequestLine) -> DemandLine:
    request = line.request
    return DemandLine(
        line_id=line.id,
        request_id=request.id,
        circle_id=request.circle_id,
        article_id=line.article_id,
        qty=line.qty,
        qty_validated=line.qty_validated,
        unit_price=line.article.unit_price,
        request_status=request.status,
        request_created_at=request.created_at,
        line_created_at=line.created_at,
    )


def _get_period(period_id: UUID) -> OrderPeriod:
    try:
        return OrderPeriod.objects.get(id=period_id)
    except OrderPeriod.DoesNotExist:
        raise PeriodNotFoundError(f"Period with ID {period_id} not found")


def load_demand_lines(
    *,
    period_id: UUID,
    article_id: Optional[UUID] = None,
    statuses: Optional[Iterable[str]] = None,
    include_drafts: bool = False
) -> List[DemandLine]:
    """
    Read the period's lines into DemandLine rows, in original line order.

    Draft requests are excluded unless ``include_drafts`` is set or an
    explicit ``statuses`` filter is given.
    """
    _get_period(period_id)
    lines = (
        RequestLine.objects
        .filter(request__period_id=period_id)
        .select_related('request', 'article')
    )
    if statuses is not None:
        lines = lines.filter(request__status__in=list(statuses))
    elif not include_drafts:
        lines = lines.exclude(request__status=RequestStatus.DRAFT)
    if article_id is not None:
        lines = lines.filter(article_id=article_id)

    rows = [_to_demand_line(line) for line in lines]
    rows.sort(key=lambda row: row.sort_key)
    return rows


def sum_demand(rows: Iterable[DemandLine]) -> Dict[UUID, ArticleDemand]:
    """
    Total requested quantity per article, keeping the contributing lines.

    Pure function: the total for an article is the plain sum of ``qty``
    over the given rows for that article.
    """
    grouped: Dict[UUID, List[DemandLine]] = defaultdict(list)
    for row in rows:
        grouped[row.article_id].append(row)

    demand = {}
    for article_id, article_rows in grouped.items():
        article_rows.sort(key=lambda row: row.sort_key)
        demand[article_id] = ArticleDemand(
            article_id=article_id,
            total_qty=sum(row.qty for row in article_rows),
            lines=tuple(article_rows),
        )
    return demand


def aggregate_demand(*, period_id: UUID) -> Dict[UUID, ArticleDemand]:
    """Per-article demand over every non-draft request of the period."""
    return sum_demand(load_demand_lines(period_id=period_id))


def period_total(
    *,
    period_id: UUID,
    statuses: Optional[Iterable[str]] = None
) -> Decimal:
    """
    Money value of the period: ``unit_price * effective quantity`` summed.

    Without ``statuses`` every request counts, drafts included.
    """
    rows = load_demand_lines(
        period_id=period_id,
        statuses=statuses,
        include_drafts=True,
    )
    total = sum((row.unit_price * row.effective_qty for row in rows), Decimal('0.00'))
    return total.quantize(Decimal('0.01'))


def period_totals_by_status(*, period_id: UUID) -> Dict[str, Decimal]:
    """One running total per request status, for the dashboard."""
    totals = {status: Decimal('0.00') for status in RequestStatus.values}
    for row in load_demand_lines(period_id=period_id, include_drafts=True):
        totals[row.request_status] += row.unit_price * row.effective_qty
    return {status: amount.quantize(Decimal('0.01')) for status, amount in totals.items()}


def circle_breakdown(*, period_id: UUID) -> List[CircleArticleDemand]:
    """Per-circle, per-article quantities of the period's non-draft requests."""
    _get_period(period_id)
    lines = (
        RequestLine.objects
        .filter(request__period_id=period_id)
        .exclude(request__status=RequestStatus.DRAFT)
        .select_related('request__circle', 'article')
    )

    buckets: Dict[Tuple[UUID, UUID], dict] = {}
    for line in lines:
        circle = line.request.circle
        key = (circle.id, line.article_id)
        bucket = buckets.setdefault(key, {
            'circle_name': circle.name,
            'article_label': line.article.label,
            'qty': 0,
            'effective_qty': 0,
        })
        bucket['qty'] += line.qty
        bucket['effective_qty'] += line.effective_qty

    breakdown = [
        CircleArticleDemand(circle_id=circle_id, article_id=article_id, **values)
        for (circle_id, article_id), values in buckets.items()
    ]
    breakdown.sort(key=lambda item: (item.circle_name, item.article_label))
    return breakdown
