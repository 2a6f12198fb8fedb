"""
Reception reconciliation.

Outstanding lines of ordered periods are grouped by (period, article,
delivery date). For each group the operator records one decision per
session: everything arrived, part of it arrived, or nothing arrived.
The received quantity is spread over the group's lines in proportion to
what each line still expects, using the same largest-remainder split as
quantity approval. Sessions are incremental: a fully received line drops
out of the worklist.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from django.db import transaction

from apps.ordering.context import OrderingContext
from apps.ordering.models import (
    CircleRequest,
    OrderPeriod,
    PeriodStatus,
    ReceptionStatus,
    RequestLine,
    RequestStatus,
)

from .apportionment import largest_remainder
from .exceptions import (
    OrderingValidationError,
    ReceptionQuantityError,
    NothingToReceiveError,
    PeriodNotFoundError,
    PeriodNotReceivableError,
    InsufficientPermissionsError,
)
from .lifecycle import line_reception_state, on_reception_recorded, on_requests_settled

logger = logging.getLogger(__name__)

RECEIVABLE_PERIOD_STATUSES = (PeriodStatus.ORDERED, PeriodStatus.WAITING)


@dataclass(frozen=True)
class ReceptionKey:
    period_id: UUID
    article_id: UUID
    delivery_date: Optional[date] = None


@dataclass(frozen=True)
class OutstandingLine:
    line_id: UUID
    request_id: UUID
    qty_validated: int
    qty_received: int

    @property
    def remaining(self) -> int:
        return max(0, self.qty_validated - self.qty_received)


@dataclass(frozen=True)
class ReceptionGroup:
    key: ReceptionKey
    period_name: str
    article_label: str
    article_reference: str = ''
    supplier: str = ''
    lines: Tuple[OutstandingLine, ...] = field(default_factory=tuple)

    @property
    def remaining(self) -> int:
        return sum(line.remaining for line in self.lines)


@dataclass(frozen=True)
class ReceptionDecision:
    key: ReceptionKey
    status: str
    qty: Optional[int] = None
    comment: str = ''


@dataclass
class ReceptionResult:
    lines_updated: int = 0
    request_statuses: Dict[UUID, str] = field(default_factory=dict)
    period_statuses: Dict[UUID, str] = field(default_factory=dict)


def _outstanding_lines(*, period_ids: Optional[Sequence[UUID]] = None, lock: bool = False):
    lines = RequestLine.objects.filter(
        request__period__status__in=RECEIVABLE_PERIOD_STATUSES,
    ).exclude(
        request__status__in=[RequestStatus.DRAFT, RequestStatus.CANCELLED],
    )
    if period_ids is not None:
        lines = lines.filter(request__period_id__in=period_ids)
    if lock:
        lines = lines.select_for_update()
    return (
        lines
        .select_related('request__period', 'article')
        .order_by('request__created_at', 'created_at', 'id')
    )


def _build_groups(lines) -> List[ReceptionGroup]:
    buckets: Dict[ReceptionKey, dict] = OrderedDict()
    for line in lines:
        outstanding = OutstandingLine(
            line_id=line.id,
            request_id=line.request_id,
            qty_validated=line.effective_qty,
            qty_received=line.qty_received or 0,
        )
        if outstanding.remaining == 0:
            continue
        period = line.request.period
        key = ReceptionKey(
            period_id=period.id,
            article_id=line.article_id,
            delivery_date=line.delivery_date,
        )
        bucket = buckets.setdefault(key, {
            'period_name': period.name,
            'cutoff_date': period.cutoff_date,
            'article': line.article,
            'lines': [],
        })
        bucket['lines'].append(outstanding)

    ordered = sorted(
        buckets.items(),
        key=lambda item: (
            item[0].delivery_date is None,
            item[0].delivery_date or date.min,
            item[1]['cutoff_date'],
            item[1]['article'].label,
        ),
    )
    return [
        ReceptionGroup(
            key=key,
            period_name=bucket['period_name'],
            article_label=bucket['article'].label,
            article_reference=bucket['article'].reference,
            supplier=bucket['article'].supplier,
            lines=tuple(bucket['lines']),
        )
        for key, bucket in ordered
    ]


def reception_worklist(*, period_ids: Optional[Sequence[UUID]] = None) -> List[ReceptionGroup]:
    """
    Groups with something left to receive, by delivery date.

    Undated groups come last. Only periods that are ordered or waiting
    are considered.
    """
    return _build_groups(_outstanding_lines(period_ids=period_ids))


def received_quantity(group: ReceptionGroup, decision: ReceptionDecision) -> int:
    """
    Quantity the decision receives for the group.

    Raises:
        OrderingValidationError: If the decision status is unknown
        ReceptionQuantityError: If a partial quantity is missing, negative
            or above what remains
    """
    if decision.status == ReceptionStatus.FULL:
        return group.remaining
    if decision.status == ReceptionStatus.NONE:
        return 0
    if decision.status != ReceptionStatus.PARTIAL:
        raise OrderingValidationError(f"Unknown reception status '{decision.status}'")

    if decision.qty is None:
        raise ReceptionQuantityError("A partial reception needs the received quantity")
    if decision.qty < 0 or decision.qty > group.remaining:
        raise ReceptionQuantityError(
            f"Received quantity must be between 0 and {group.remaining} for {group.article_label}"
        )
    return decision.qty


def split_reception(group: ReceptionGroup, received: int) -> Dict[UUID, int]:
    """Spread ``received`` over the group's lines, proportional to what each still expects."""
    shares = largest_remainder([line.remaining for line in group.lines], received)
    return {line.line_id: share for line, share in zip(group.lines, shares)}


def apply_reception(
    ctx: OrderingContext,
    *,
    group: ReceptionGroup,
    decision: ReceptionDecision
) -> List[RequestLine]:
    """
    Write one decision onto the group's lines.

    ``qty_received`` grows by the line's share. The written
    ``reception_status`` is the line's cumulative state, so recording
    nothing for a line that was partially received keeps it partial.
    Status recomputation is left to the caller, once every group of the
    session has been written.

    Returns:
        Updated RequestLine instances
    """
    allocation = split_reception(group, received_quantity(group, decision))

    lines = list(RequestLine.objects.filter(id__in=allocation.keys()))
    for line in lines:
        line.qty_received = (line.qty_received or 0) + allocation[line.id]
        line.reception_status = line_reception_state(line)
        line.reception_comment = decision.comment or ''
        line.reception_date = ctx.now
        line.reception_user = ctx.actor
    RequestLine.objects.bulk_update(
        lines,
        ['qty_received', 'reception_status', 'reception_comment', 'reception_date', 'reception_user'],
    )
    return lines


def _check_period_receivable(period_id: UUID) -> None:
    try:
        period = OrderPeriod.objects.get(id=period_id)
    except OrderPeriod.DoesNotExist:
        raise PeriodNotFoundError(f"Period with ID {period_id} not found")
    if period.status not in RECEIVABLE_PERIOD_STATUSES:
        raise PeriodNotReceivableError(
            f"Period {period.name} is {period.get_status_display().lower()}, nothing can be received"
        )


@transaction.atomic
def record_reception(
    ctx: OrderingContext,
    decisions: Sequence[ReceptionDecision]
) -> ReceptionResult:
    """
    Record a reception session.

    Every decision is validated before the first write. All groups are
    then written, and only after that are request and period statuses
    recomputed from the stored lines.

    Args:
        ctx: Acting member and clock
        decisions: One decision per (period, article, delivery date) group

    Returns:
        ReceptionResult with the number of lines written and the new
        status of every affected request and period

    Raises:
        InsufficientPermissionsError: If actor is not a FinAdmin
        OrderingValidationError: If decisions are empty or duplicated
        PeriodNotFoundError: If a decision targets an unknown period
        PeriodNotReceivableError: If a period is not ordered or waiting
        NothingToReceiveError: If a group has nothing outstanding
        ReceptionQuantityError: If a partial quantity is out of range
    """
    if not ctx.is_finadmin:
        raise InsufficientPermissionsError("Only FinAdmin members can record receptions")
    if not decisions:
        raise OrderingValidationError("No reception decision given")

    keys = [decision.key for decision in decisions]
    if len(set(keys)) != len(keys):
        raise OrderingValidationError("Each group can only be decided once per session")

    period_ids = sorted({key.period_id for key in keys}, key=str)
    for period_id in period_ids:
        _check_period_receivable(period_id)

    groups = {
        group.key: group
        for group in _build_groups(_outstanding_lines(period_ids=period_ids, lock=True))
    }

    planned = []
    for decision in decisions:
        group = groups.get(decision.key)
        if group is None:
            raise NothingToReceiveError(
                f"Nothing left to receive for article {decision.key.article_id}"
                f" ({decision.key.delivery_date or 'no delivery date'})"
            )
        received_quantity(group, decision)
        planned.append((group, decision))

    result = ReceptionResult()
    request_ids = set()
    for group, decision in planned:
        lines = apply_reception(ctx, group=group, decision=decision)
        result.lines_updated += len(lines)
        request_ids.update(line.request_id for line in lines)

    # Every line of the session is written before statuses are derived
    for request in CircleRequest.objects.filter(id__in=request_ids).order_by('created_at'):
        result.request_statuses[request.id] = on_reception_recorded(request, ctx=ctx)

    for period in OrderPeriod.objects.filter(id__in=period_ids):
        result.period_statuses[period.id] = on_requests_settled(period, ctx=ctx)

    logger.info(
        "Reception recorded by %s: %d groups, %d lines, %d requests",
        ctx.actor.email, len(planned), result.lines_updated, len(request_ids),
    )
    return result
