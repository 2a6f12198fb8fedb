"""
Ordering app services layer.

Services contain the period lifecycle and request aggregation rules.
Every operation takes an OrderingContext (acting member and clock);
state-changing operations run in transactions and guard status changes
with conditional updates.
"""

from .exceptions import (
    OrderingServiceError,
    OrderingValidationError,
    EmptyCartError,
    QuantityExceedsDemandError,
    ReceptionQuantityError,
    NothingToReceiveError,
    PeriodNotFoundError,
    CircleNotFoundError,
    ArticleNotFoundError,
    RequestNotFoundError,
    LineNotFoundError,
    NotCircleMemberError,
    InsufficientPermissionsError,
    InvalidStateTransitionError,
    RequestNotDraftError,
    PeriodNotOpenError,
    PeriodNotReceivableError,
    DuplicatePeriodError,
    UnconfirmedQuantitiesWarning,
)

from .apportionment import largest_remainder

from .period_clock import (
    PeriodWindow,
    current_period_window,
    next_period_window,
    ensure_period_exists,
    get_current_period,
    ensure_upcoming_periods,
    create_period,
    list_periods,
)

from .request_ledger import (
    LineInput,
    upsert_request,
    replace_lines,
    set_line_quantity,
    submit_cart,
    visible_requests,
)

from .aggregation import (
    DemandLine,
    ArticleDemand,
    CircleArticleDemand,
    load_demand_lines,
    sum_demand,
    aggregate_demand,
    period_total,
    period_totals_by_status,
    circle_breakdown,
)

from .adjustment import (
    apply_approved_quantity,
    set_delivery_date,
)

from .lifecycle import (
    submit_request,
    rollback_request,
    bulk_transition,
    order_period,
    on_period_ordered,
    set_period_status,
    on_reception_recorded,
    on_requests_settled,
)

from .reception import (
    ReceptionKey,
    OutstandingLine,
    ReceptionGroup,
    ReceptionDecision,
    ReceptionResult,
    reception_worklist,
    received_quantity,
    split_reception,
    apply_reception,
    record_reception,
)


__all__ = [
    # Exceptions
    'OrderingServiceError',
    'OrderingValidationError',
    'EmptyCartError',
    'QuantityExceedsDemandError',
    'ReceptionQuantityError',
    'NothingToReceiveError',
    'PeriodNotFoundError',
    'CircleNotFoundError',
    'ArticleNotFoundError',
    'RequestNotFoundError',
    'LineNotFoundError',
    'NotCircleMemberError',
    'InsufficientPermissionsError',
    'InvalidStateTransitionError',
    'RequestNotDraftError',
    'PeriodNotOpenError',
    'PeriodNotReceivableError',
    'DuplicatePeriodError',
    'UnconfirmedQuantitiesWarning',

    # Apportionment
    'largest_remainder',

    # Period Clock
    'PeriodWindow',
    'current_period_window',
    'next_period_window',
    'ensure_period_exists',
    'get_current_period',
    'ensure_upcoming_periods',
    'create_period',
    'list_periods',

    # Request Ledger
    'LineInput',
    'upsert_request',
    'replace_lines',
    'set_line_quantity',
    'submit_cart',
    'visible_requests',

    # Aggregation
    'DemandLine',
    'ArticleDemand',
    'CircleArticleDemand',
    'load_demand_lines',
    'sum_demand',
    'aggregate_demand',
    'period_total',
    'period_totals_by_status',
    'circle_breakdown',

    # Adjustment
    'apply_approved_quantity',
    'set_delivery_date',

    # Lifecycle
    'submit_request',
    'rollback_request',
    'bulk_transition',
    'order_period',
    'on_period_ordered',
    'set_period_status',
    'on_reception_recorded',
    'on_requests_settled',

    # Reception
    'ReceptionKey',
    'OutstandingLine',
    'ReceptionGroup',
    'ReceptionDecision',
    'ReceptionResult',
    'reception_worklist',
    'received_quantity',
    'split_reception',
    'apply_reception',
    'record_reception',
]
