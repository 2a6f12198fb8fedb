"""
Lifecycle state machine for periods and requests.

Period:  open -> ordered -> waiting -> closed, any -> archived (manual)
Request: draft <-> submitted -> validated -> waiting -> received
                              -> cancelled

Every transition is a conditional update guarded by the current status,
so replaying one is harmless and a stale caller gets an error instead of
overwriting newer state. Statuses derived from reception only move
forward.
"""

import logging
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from django.db import transaction
from django.db.models import F

from apps.ordering.context import OrderingContext
from apps.ordering.models import (
    CircleRequest,
    OrderPeriod,
    PeriodStatus,
    ReceptionStatus,
    RequestLine,
    RequestStatus,
)

from .aggregation import load_demand_lines, sum_demand
from .exceptions import (
    OrderingValidationError,
    EmptyCartError,
    PeriodNotFoundError,
    RequestNotFoundError,
    InsufficientPermissionsError,
    InvalidStateTransitionError,
    PeriodNotOpenError,
    UnconfirmedQuantitiesWarning,
)

logger = logging.getLogger(__name__)

# Progress order for statuses that reception may advance
REQUEST_PROGRESS = {
    RequestStatus.VALIDATED: 0,
    RequestStatus.WAITING: 1,
    RequestStatus.RECEIVED: 2,
}
PERIOD_PROGRESS = {
    PeriodStatus.ORDERED: 0,
    PeriodStatus.WAITING: 1,
    PeriodStatus.CLOSED: 2,
}

SETTLED_REQUEST_STATUSES = (RequestStatus.RECEIVED, RequestStatus.CANCELLED)
BULK_STATUSES = (RequestStatus.DRAFT, RequestStatus.SUBMITTED)


# === Helpers ===

def _get_request(request_id: UUID) -> CircleRequest:
    try:
        return CircleRequest.objects.select_related('period').get(id=request_id)
    except CircleRequest.DoesNotExist:
        raise RequestNotFoundError(f"Request with ID {request_id} not found")


def _get_period(period_id: UUID, *, lock: bool = False) -> OrderPeriod:
    periods = OrderPeriod.objects.select_for_update() if lock else OrderPeriod.objects
    try:
        return periods.get(id=period_id)
    except OrderPeriod.DoesNotExist:
        raise PeriodNotFoundError(f"Period with ID {period_id} not found")


def _transition_request(
    request: CircleRequest,
    *,
    from_status: str,
    to_status: str,
    ctx: OrderingContext
) -> CircleRequest:
    updated = (
        CircleRequest.objects
        .filter(id=request.id, status=from_status)
        .update(status=to_status, updated_at=ctx.now)
    )
    if not updated:
        raise InvalidStateTransitionError(
            f"Request cannot move from {request.get_status_display().lower()} to {to_status}"
        )
    request.status = to_status
    logger.info(
        "Request %s: %s -> %s by %s", request.id, from_status, to_status, ctx.actor.email
    )
    return request


def derive_request_status(line_states: Iterable[str]) -> str:
    """
    Request status implied by the reception status of its lines.

    All fully received -> received; all not received -> validated;
    anything else (partial lines, or a mix of full and none) -> waiting.
    """
    states = set(line_states)
    if not states or states == {ReceptionStatus.FULL}:
        return RequestStatus.RECEIVED
    if states == {ReceptionStatus.NONE}:
        return RequestStatus.VALIDATED
    return RequestStatus.WAITING


def derive_period_status(request_statuses: Sequence[str]) -> Optional[str]:
    """
    Period status implied by its non-draft requests.

    None when there is no request to judge by.
    """
    if not request_statuses:
        return None
    if all(status in SETTLED_REQUEST_STATUSES for status in request_statuses):
        return PeriodStatus.CLOSED
    if any(status == RequestStatus.WAITING for status in request_statuses):
        return PeriodStatus.WAITING
    return PeriodStatus.ORDERED


def line_reception_state(line: RequestLine) -> str:
    """Cumulative reception state of a line; nothing ordered counts as received."""
    if line.remaining_qty == 0:
        return ReceptionStatus.FULL
    if not line.qty_received:
        return ReceptionStatus.NONE
    return ReceptionStatus.PARTIAL


# === Request transitions ===

@transaction.atomic
def submit_request(ctx: OrderingContext, *, request_id: UUID) -> CircleRequest:
    """
    Submit a draft request (draft -> submitted).

    Raises:
        RequestNotFoundError: If request doesn't exist
        InsufficientPermissionsError: If actor is not the creator
        PeriodNotOpenError: If the period is not open
        EmptyCartError: If the request has no line
        InvalidStateTransitionError: If request is not a draft
    """
    request = _get_request(request_id)
    if request.created_by_id != ctx.actor.id:
        raise InsufficientPermissionsError("Only the request creator can submit it")
    if not request.period.is_open:
        raise PeriodNotOpenError(f"Period {request.period.name} is not open")
    if not request.lines.exists():
        raise EmptyCartError("Cannot submit an empty request")

    return _transition_request(
        request,
        from_status=RequestStatus.DRAFT,
        to_status=RequestStatus.SUBMITTED,
        ctx=ctx,
    )


@transaction.atomic
def rollback_request(ctx: OrderingContext, *, request_id: UUID) -> CircleRequest:
    """
    Send a submitted request back to draft while the period is open.

    Allowed for the creator and for FinAdmins. Approved quantities are
    dropped since the cart may change.
    """
    request = _get_request(request_id)
    if request.created_by_id != ctx.actor.id and not ctx.is_finadmin:
        raise InsufficientPermissionsError("Only the creator or a FinAdmin can roll a request back")
    if not request.period.is_open:
        raise PeriodNotOpenError(f"Period {request.period.name} is not open")

    request = _transition_request(
        request,
        from_status=RequestStatus.SUBMITTED,
        to_status=RequestStatus.DRAFT,
        ctx=ctx,
    )
    request.lines.update(qty_validated=None)
    return request


@transaction.atomic
def bulk_transition(
    ctx: OrderingContext,
    *,
    period_id: UUID,
    from_statuses: Iterable[str],
    to_status: str,
    circle_id: Optional[UUID] = None
) -> int:
    """
    Move every matching request of an open period to ``to_status``.

    One multi-row conditional update; requests that changed status in
    the meantime are simply not matched.

    Args:
        ctx: Acting member and clock
        period_id: UUID of the period
        from_statuses: Subset of draft/submitted to match
        to_status: draft or submitted
        circle_id: Restrict to one circle

    Returns:
        Number of requests updated

    Raises:
        InsufficientPermissionsError: If actor is not a FinAdmin
        OrderingValidationError: If statuses are outside draft/submitted
        PeriodNotOpenError: If period is not open
    """
    if not ctx.is_finadmin:
        raise InsufficientPermissionsError("Only FinAdmin members can run bulk transitions")

    from_statuses = list(from_statuses)
    if not from_statuses or any(s not in BULK_STATUSES for s in from_statuses) or to_status not in BULK_STATUSES:
        raise OrderingValidationError("Bulk transitions only move requests between draft and submitted")

    period = _get_period(period_id, lock=True)
    if not period.is_open:
        raise PeriodNotOpenError(f"Period {period.name} is not open")

    requests = (
        CircleRequest.objects
        .filter(period=period, status__in=from_statuses)
        .exclude(status=to_status)
    )
    if circle_id:
        requests = requests.filter(circle_id=circle_id)
    if to_status == RequestStatus.SUBMITTED:
        requests = requests.filter(lines__isnull=False).distinct()

    request_ids = list(requests.values_list('id', flat=True))
    updated = (
        CircleRequest.objects
        .filter(id__in=request_ids, status__in=from_statuses)
        .update(status=to_status, updated_at=ctx.now)
    )
    if to_status == RequestStatus.DRAFT:
        RequestLine.objects.filter(request_id__in=request_ids).update(qty_validated=None)

    logger.info(
        "Bulk %s -> %s in period %s: %d requests by %s",
        ','.join(from_statuses), to_status, period.name, updated, ctx.actor.email,
    )
    return updated


# === Period transitions ===

def unconfirmed_articles(period: OrderPeriod) -> List[UUID]:
    """Articles with submitted lines that have no approved quantity yet."""
    rows = load_demand_lines(period_id=period.id, statuses=[RequestStatus.SUBMITTED])
    return [
        article_id
        for article_id, demand in sum_demand(rows).items()
        if not demand.is_confirmed
    ]


@transaction.atomic
def order_period(
    ctx: OrderingContext,
    *,
    period_id: UUID,
    confirm: bool = False
) -> OrderPeriod:
    """
    Place the period's consolidated order (open -> ordered).

    Articles never approved are ordered at their requested quantity.
    Since that may be an oversight, the call is refused with
    UnconfirmedQuantitiesWarning unless ``confirm`` is set.

    Raises:
        InsufficientPermissionsError: If actor is not a FinAdmin
        PeriodNotFoundError: If period doesn't exist
        PeriodNotOpenError: If period is not open
        UnconfirmedQuantitiesWarning: If unapproved articles remain and
            confirm is False
    """
    if not ctx.is_finadmin:
        raise InsufficientPermissionsError("Only FinAdmin members can order a period")

    period = _get_period(period_id, lock=True)
    if not period.is_open:
        raise PeriodNotOpenError(f"Period {period.name} is not open")

    pending = unconfirmed_articles(period)
    if pending and not confirm:
        raise UnconfirmedQuantitiesWarning(
            f"{len(pending)} article(s) have no approved quantity",
            article_ids=pending,
        )
    if pending:
        logger.warning(
            "Period %s ordered with %d unapproved article(s), confirmed by %s",
            period.name, len(pending), ctx.actor.email,
        )

    updated = (
        OrderPeriod.objects
        .filter(id=period.id, status=PeriodStatus.OPEN)
        .update(status=PeriodStatus.ORDERED, updated_at=ctx.now)
    )
    if not updated:
        raise PeriodNotOpenError(f"Period {period.name} is not open")
    period.status = PeriodStatus.ORDERED

    logger.info("Period %s ordered by %s", period.name, ctx.actor.email)
    on_period_ordered(period, ctx=ctx)
    return period


def on_period_ordered(period: OrderPeriod, *, ctx: OrderingContext) -> None:
    """
    Settle the submitted requests of a period that was just ordered.

    Unapproved lines are frozen at their requested quantity. A request
    with something to deliver becomes validated; one whose lines all
    come to zero (or that has no line) is cancelled. A period whose
    requests were all cancelled closes right away.
    """
    submitted = CircleRequest.objects.filter(period=period, status=RequestStatus.SUBMITTED)

    RequestLine.objects.filter(
        request__in=submitted, qty_validated__isnull=True
    ).update(qty_validated=F('qty'))

    validated_ids = set(
        RequestLine.objects
        .filter(request__in=submitted, qty_validated__gt=0)
        .values_list('request_id', flat=True)
    )
    submitted_ids = list(submitted.values_list('id', flat=True))
    cancelled_ids = [rid for rid in submitted_ids if rid not in validated_ids]

    validated = (
        CircleRequest.objects
        .filter(id__in=validated_ids, status=RequestStatus.SUBMITTED)
        .update(status=RequestStatus.VALIDATED, updated_at=ctx.now)
    )
    cancelled = (
        CircleRequest.objects
        .filter(id__in=cancelled_ids, status=RequestStatus.SUBMITTED)
        .update(status=RequestStatus.CANCELLED, updated_at=ctx.now)
    )
    logger.info(
        "Period %s ordered: %d requests validated, %d cancelled",
        period.name, validated, cancelled,
    )
    # Periods whose requests were all cancelled close here
    on_requests_settled(period, ctx=ctx)


@transaction.atomic
def set_period_status(
    ctx: OrderingContext,
    *,
    period_id: UUID,
    status: str
) -> OrderPeriod:
    """
    Force a period status (FinAdmin override).

    Bypasses the derived-status rules. Moving an open period to ordered
    still settles its submitted requests.

    Raises:
        InsufficientPermissionsError: If actor is not a FinAdmin
        PeriodNotFoundError: If period doesn't exist
        OrderingValidationError: If status is unknown
    """
    if not ctx.is_finadmin:
        raise InsufficientPermissionsError("Only FinAdmin members can change a period status")
    if status not in PeriodStatus.values:
        raise OrderingValidationError(f"Unknown period status '{status}'")

    period = _get_period(period_id, lock=True)
    previous = period.status
    if previous == status:
        return period

    OrderPeriod.objects.filter(id=period.id).update(status=status, updated_at=ctx.now)
    period.status = status
    logger.warning(
        "Period %s status forced %s -> %s by %s", period.name, previous, status, ctx.actor.email
    )

    if previous == PeriodStatus.OPEN and status == PeriodStatus.ORDERED:
        on_period_ordered(period, ctx=ctx)
    return period


# === Reception-driven transitions ===

def on_reception_recorded(request: CircleRequest, *, ctx: OrderingContext) -> str:
    """
    Recompute a request's status from its lines after a reception.

    Reads the lines fresh from the store, so it must run after every
    line write of the session. Lines validated at zero are ignored; a
    request left with none is received. Only moves forward.

    Returns:
        The request's status after the update
    """
    current = CircleRequest.objects.values_list('status', flat=True).get(id=request.id)
    if current not in REQUEST_PROGRESS:
        return current

    # Lines cut to zero at approval have nothing to receive and do not count
    lines = RequestLine.objects.filter(request_id=request.id).exclude(qty_validated=0)
    target = derive_request_status(line_reception_state(line) for line in lines)
    if REQUEST_PROGRESS[target] <= REQUEST_PROGRESS[current]:
        return current

    _transition_request(request, from_status=current, to_status=target, ctx=ctx)
    return target


def on_requests_settled(period: OrderPeriod, *, ctx: OrderingContext) -> str:
    """
    Recompute a period's status from its non-draft requests.

    All received or cancelled -> closed; any partially received ->
    waiting; otherwise ordered. Only moves forward.

    Returns:
        The period's status after the update
    """
    current = OrderPeriod.objects.values_list('status', flat=True).get(id=period.id)
    if current not in PERIOD_PROGRESS:
        return current

    statuses = list(
        CircleRequest.objects
        .filter(period_id=period.id)
        .exclude(status=RequestStatus.DRAFT)
        .values_list('status', flat=True)
    )
    target = derive_period_status(statuses)
    if target is None or PERIOD_PROGRESS[target] <= PERIOD_PROGRESS[current]:
        return current

    updated = (
        OrderPeriod.objects
        .filter(id=period.id, status=current)
        .update(status=target, updated_at=ctx.now)
    )
    if not updated:
        raise InvalidStateTransitionError(f"Period {period.name} changed status concurrently")
    period.status = target
    logger.info("Period %s: %s -> %s", period.name, current, target)
    return target
