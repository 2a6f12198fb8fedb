from django.db.models import Prefetch
from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from apps.catalog.models import Article
from apps.circles.permissions import IsFinAdmin

from .context import OrderingContext
from .models import OrderPeriod, RequestLine
from .serializers import (
    OrderPeriodSerializer,
    OrderPeriodCreateSerializer,
    EnsurePeriodsSerializer,
    CircleRequestSerializer,
    RequestLineSerializer,
    ReplaceLinesSerializer,
    CartSerializer,
    LineQuantitySerializer,
    ApproveQuantitySerializer,
    DeliveryDateSerializer,
    OrderPeriodActionSerializer,
    SetPeriodStatusSerializer,
    BulkTransitionSerializer,
    ArticleDemandSerializer,
    CircleArticleDemandSerializer,
    ReceptionGroupSerializer,
    ReceptionSessionSerializer,
    ReceptionResultSerializer,
    RequestFilterSerializer,
    ReceptionFilterSerializer,
)

from apps.ordering.services import (
    get_current_period,
    ensure_upcoming_periods,
    create_period,
    list_periods,
    submit_cart,
    replace_lines,
    set_line_quantity,
    visible_requests,
    aggregate_demand,
    period_totals_by_status,
    circle_breakdown,
    apply_approved_quantity,
    set_delivery_date,
    submit_request,
    rollback_request,
    bulk_transition,
    order_period,
    set_period_status,
    reception_worklist,
    record_reception,
    # Exceptions
    OrderingServiceError,
    OrderingValidationError,
    PeriodNotFoundError,
    CircleNotFoundError,
    ArticleNotFoundError,
    RequestNotFoundError,
    LineNotFoundError,
    NotCircleMemberError,
    InsufficientPermissionsError,
    InvalidStateTransitionError,
    DuplicatePeriodError,
    UnconfirmedQuantitiesWarning,
)

# Detail routes only match canonical UUIDs
UUID_PATTERN = '[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}'


# Most specific first
ERROR_STATUS_CODES = [
    (UnconfirmedQuantitiesWarning, status.HTTP_409_CONFLICT),
    (DuplicatePeriodError, status.HTTP_409_CONFLICT),
    (OrderingValidationError, status.HTTP_400_BAD_REQUEST),
    ((PeriodNotFoundError, CircleNotFoundError, ArticleNotFoundError,
      RequestNotFoundError, LineNotFoundError), status.HTTP_404_NOT_FOUND),
    ((NotCircleMemberError, InsufficientPermissionsError), status.HTTP_403_FORBIDDEN),
    (InvalidStateTransitionError, status.HTTP_400_BAD_REQUEST),
]


def service_error_response(error: OrderingServiceError) -> Response:
    """Convert a service exception into an error response."""
    code = status.HTTP_400_BAD_REQUEST
    for error_types, error_code in ERROR_STATUS_CODES:
        if isinstance(error, error_types):
            code = error_code
            break

    body = {'error': str(error)}
    if isinstance(error, UnconfirmedQuantitiesWarning):
        body['requires_confirmation'] = True
        body['article_ids'] = [str(article_id) for article_id in error.article_ids]
    return Response(body, status=code)


class OrderPeriodViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for ordering periods.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Active periods, newest first (?include_archived=true for all)
    retrieve: One period
    create: Manually create a period (FinAdmin)
    """

    serializer_class = OrderPeriodSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        if self.action == 'list':
            include_archived = self.request.query_params.get('include_archived') in ('1', 'true', 'True')
            return list_periods(include_archived=include_archived)
        return OrderPeriod.objects.all()

    def get_permissions(self):
        if self.action == 'create':
            return [IsAuthenticated(), IsFinAdmin()]
        return [IsAuthenticated()]

    @extend_schema(request=OrderPeriodCreateSerializer, responses={201: OrderPeriodSerializer})
    def create(self, request, *args, **kwargs):
        """Create a period with a name and a cutoff date."""
        serializer = OrderPeriodCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            period = create_period(
                OrderingContext.from_request(request),
                name=serializer.validated_data['name'],
                cutoff_date=serializer.validated_data['cutoff_date'],
            )
        except OrderingServiceError as e:
            return service_error_response(e)

        return Response(OrderPeriodSerializer(period).data, status=status.HTTP_201_CREATED)

    @extend_schema(responses={200: OrderPeriodSerializer})
    @action(detail=False, methods=['get'])
    def current(self, request):
        """Period the member's cart targets, created if needed."""
        period = get_current_period(OrderingContext.from_request(request))
        return Response(OrderPeriodSerializer(period).data)

    @extend_schema(request=None, responses={200: EnsurePeriodsSerializer})
    @action(detail=False, methods=['post'])
    def ensure(self, request):
        """Make sure the current and next periods exist."""
        current, upcoming = ensure_upcoming_periods(OrderingContext.from_request(request))
        return Response(EnsurePeriodsSerializer({'current': current, 'next': upcoming}).data)

    @extend_schema(responses={200: ArticleDemandSerializer(many=True)})
    @action(detail=True, methods=['get'])
    def demand(self, request, pk=None):
        """Per-article demand over the period's non-draft requests."""
        try:
            demand = aggregate_demand(period_id=pk)
        except OrderingServiceError as e:
            return service_error_response(e)

        labels = dict(
            Article.objects.filter(id__in=demand.keys()).values_list('id', 'label')
        )
        items = sorted(demand.values(), key=lambda item: labels.get(item.article_id, ''))
        serializer = ArticleDemandSerializer(items, many=True, context={'labels': labels})
        return Response(serializer.data)

    @action(detail=True, methods=['get'])
    def totals(self, request, pk=None):
        """Money total per request status."""
        try:
            totals = period_totals_by_status(period_id=pk)
        except OrderingServiceError as e:
            return service_error_response(e)
        return Response({key: str(value) for key, value in totals.items()})

    @extend_schema(responses={200: CircleArticleDemandSerializer(many=True)})
    @action(detail=True, methods=['get'])
    def circles(self, request, pk=None):
        """Per-circle, per-article quantities."""
        try:
            breakdown = circle_breakdown(period_id=pk)
        except OrderingServiceError as e:
            return service_error_response(e)
        return Response(CircleArticleDemandSerializer(breakdown, many=True).data)

    @extend_schema(request=ApproveQuantitySerializer)
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsFinAdmin])
    def approve(self, request, pk=None):
        """Approve an aggregate quantity and redistribute it over the lines (FinAdmin)."""
        serializer = ApproveQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            allocation = apply_approved_quantity(
                OrderingContext.from_request(request),
                period_id=pk,
                article_id=serializer.validated_data['article_id'],
                approved_qty=serializer.validated_data['approved_qty'],
            )
        except OrderingServiceError as e:
            return service_error_response(e)

        return Response({
            'article_id': str(serializer.validated_data['article_id']),
            'approved_qty': serializer.validated_data['approved_qty'],
            'lines': {str(line_id): qty for line_id, qty in allocation.items()},
        })

    @extend_schema(request=DeliveryDateSerializer)
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsFinAdmin])
    def delivery_date(self, request, pk=None):
        """Set the expected delivery date of an article (FinAdmin)."""
        serializer = DeliveryDateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            updated = set_delivery_date(
                OrderingContext.from_request(request),
                period_id=pk,
                article_id=serializer.validated_data['article_id'],
                delivery_date=serializer.validated_data['delivery_date'],
            )
        except OrderingServiceError as e:
            return service_error_response(e)

        return Response({'lines_updated': updated})

    @extend_schema(request=OrderPeriodActionSerializer, responses={200: OrderPeriodSerializer})
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsFinAdmin])
    def order(self, request, pk=None):
        """Place the consolidated order (FinAdmin). Unapproved articles need confirm=true."""
        serializer = OrderPeriodActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            period = order_period(
                OrderingContext.from_request(request),
                period_id=pk,
                confirm=serializer.validated_data['confirm'],
            )
        except OrderingServiceError as e:
            return service_error_response(e)

        return Response(OrderPeriodSerializer(period).data)

    @extend_schema(request=SetPeriodStatusSerializer, responses={200: OrderPeriodSerializer})
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsFinAdmin])
    def set_status(self, request, pk=None):
        """Force the period status (FinAdmin override)."""
        serializer = SetPeriodStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            period = set_period_status(
                OrderingContext.from_request(request),
                period_id=pk,
                status=serializer.validated_data['status'],
            )
        except OrderingServiceError as e:
            return service_error_response(e)

        return Response(OrderPeriodSerializer(period).data)

    @extend_schema(request=BulkTransitionSerializer)
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsFinAdmin])
    def bulk_transition(self, request, pk=None):
        """Move matching requests between draft and submitted (FinAdmin)."""
        serializer = BulkTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            updated = bulk_transition(
                OrderingContext.from_request(request),
                period_id=pk,
                from_statuses=serializer.validated_data['from_statuses'],
                to_status=serializer.validated_data['to_status'],
                circle_id=serializer.validated_data.get('circle_id'),
            )
        except OrderingServiceError as e:
            return service_error_response(e)

        return Response({'requests_updated': updated})


class CircleRequestViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for circle requests.

    list: Requests visible to the member (?period=, ?circle=, ?status=)
    retrieve: One request with its lines
    """

    serializer_class = CircleRequestSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        params = self.request.query_params
        filters = RequestFilterSerializer(data=params)
        filters.is_valid(raise_exception=True)
        return visible_requests(
            OrderingContext.from_request(self.request),
            period_id=filters.validated_data.get('period'),
            circle_id=filters.validated_data.get('circle'),
            statuses=params.getlist('status') or None,
        ).prefetch_related(
            Prefetch('lines', queryset=RequestLine.objects.select_related('article', 'reception_user'))
        )

    def _render(self, request_id):
        request_obj = self.get_queryset().get(id=request_id)
        return CircleRequestSerializer(request_obj).data

    @extend_schema(request=CartSerializer, responses={200: CircleRequestSerializer})
    @action(detail=False, methods=['post'])
    def cart(self, request):
        """Validate the cart into the current period."""
        serializer = CartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            circle_request = submit_cart(
                OrderingContext.from_request(request),
                circle_id=serializer.validated_data.get('circle_id'),
                lines=serializer.get_line_inputs(),
            )
        except OrderingServiceError as e:
            return service_error_response(e)

        return Response(self._render(circle_request.id))

    @extend_schema(request=ReplaceLinesSerializer, responses={200: CircleRequestSerializer})
    @action(detail=True, methods=['put'])
    def lines(self, request, pk=None):
        """Replace every line of a draft request."""
        serializer = ReplaceLinesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        ctx = OrderingContext.from_request(request)
        try:
            replace_lines(ctx, request_id=pk, lines=serializer.get_line_inputs())
        except OrderingServiceError as e:
            return service_error_response(e)

        if not serializer.validated_data['lines']:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(self._render(pk))

    @extend_schema(request=None, responses={200: CircleRequestSerializer})
    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        """Submit a draft request."""
        try:
            submit_request(OrderingContext.from_request(request), request_id=pk)
        except OrderingServiceError as e:
            return service_error_response(e)
        return Response(self._render(pk))

    @extend_schema(request=None, responses={200: CircleRequestSerializer})
    @action(detail=True, methods=['post'])
    def rollback(self, request, pk=None):
        """Send a submitted request back to draft."""
        try:
            rollback_request(OrderingContext.from_request(request), request_id=pk)
        except OrderingServiceError as e:
            return service_error_response(e)
        return Response(self._render(pk))


@extend_schema(
    request=LineQuantitySerializer,
    responses={200: RequestLineSerializer},
    description="Change a draft line quantity. Zero removes the line.",
    tags=['ordering'],
)
@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def update_line(request, line_id):
    """Live cart edit."""
    serializer = LineQuantitySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        line = set_line_quantity(
            OrderingContext.from_request(request),
            line_id=line_id,
            qty=serializer.validated_data['qty'],
        )
    except OrderingServiceError as e:
        return service_error_response(e)

    if line is None:
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(RequestLineSerializer(line).data)


@extend_schema(
    methods=['GET'],
    responses={200: ReceptionGroupSerializer(many=True)},
    description="Outstanding (period, article, delivery date) groups, dated groups first.",
    tags=['ordering'],
)
@extend_schema(
    methods=['POST'],
    request=ReceptionSessionSerializer,
    responses={200: ReceptionResultSerializer},
    description="Record one reception session.",
    tags=['ordering'],
)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsFinAdmin])
def reception(request):
    """Reception worklist and session recording (FinAdmin)."""
    if request.method == 'GET':
        filters = ReceptionFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        groups = reception_worklist(period_ids=filters.validated_data.get('period') or None)
        return Response(ReceptionGroupSerializer(groups, many=True).data)

    serializer = ReceptionSessionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        result = record_reception(
            OrderingContext.from_request(request),
            serializer.get_decisions(),
        )
    except OrderingServiceError as e:
        return service_error_response(e)

    return Response(ReceptionResultSerializer(result).data)
