from decimal import Decimal

from rest_framework import serializers

from apps.accounts.models import User
from apps.circles.serializers import CircleSerializer

from .models import (
    CircleRequest,
    OrderPeriod,
    PeriodStatus,
    ReceptionStatus,
    RequestLine,
    RequestStatus,
)
from .services import LineInput, ReceptionDecision, ReceptionKey


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal user info for nested serialization."""

    display_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'display_name']
        read_only_fields = fields

    def get_display_name(self, obj):
        return obj.get_display_name()


# === Periods ===

class OrderPeriodSerializer(serializers.ModelSerializer):
    """Period with its display status."""

    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = OrderPeriod
        fields = ['id', 'name', 'cutoff_date', 'status', 'status_display', 'created_at', 'updated_at']
        read_only_fields = fields


class OrderPeriodCreateSerializer(serializers.Serializer):
    """Manual period creation (FinAdmin)."""

    name = serializers.CharField(max_length=100)
    cutoff_date = serializers.DateField()


class EnsurePeriodsSerializer(serializers.Serializer):
    current = OrderPeriodSerializer()
    next = OrderPeriodSerializer()


# === Requests ===

class RequestLineSerializer(serializers.ModelSerializer):
    """Line with approval and reception tracking."""

    article_label = serializers.CharField(source='article.label', read_only=True)
    unit_price = serializers.DecimalField(
        source='article.unit_price', max_digits=10, decimal_places=2, read_only=True
    )
    reception_user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = RequestLine
        fields = [
            'id',
            'article',
            'article_label',
            'unit_price',
            'qty',
            'qty_validated',
            'qty_received',
            'delivery_date',
            'reception_status',
            'reception_comment',
            'reception_date',
            'reception_user',
        ]
        read_only_fields = fields


class CircleRequestSerializer(serializers.ModelSerializer):
    """A member's cart for one circle and period."""

    circle = CircleSerializer(read_only=True)
    period = OrderPeriodSerializer(read_only=True)
    created_by = UserMinimalSerializer(read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    lines = RequestLineSerializer(many=True, read_only=True)
    total = serializers.SerializerMethodField()

    class Meta:
        model = CircleRequest
        fields = [
            'id',
            'circle',
            'period',
            'created_by',
            'status',
            'status_display',
            'lines',
            'total',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_total(self, obj):
        """Money value of the request at effective quantities."""
        total = sum(
            (line.article.unit_price * line.effective_qty for line in obj.lines.all()),
            Decimal('0.00'),
        )
        return str(total.quantize(Decimal('0.01')))


class LineInputSerializer(serializers.Serializer):
    article_id = serializers.UUIDField()
    qty = serializers.IntegerField(min_value=1)


class ReplaceLinesSerializer(serializers.Serializer):
    """New content of a draft request."""

    lines = LineInputSerializer(many=True, allow_empty=True)

    def get_line_inputs(self):
        return [
            LineInput(article_id=line['article_id'], qty=line['qty'])
            for line in self.validated_data['lines']
        ]


class CartSerializer(ReplaceLinesSerializer):
    """Cart validation: circle plus lines."""

    circle_id = serializers.UUIDField(required=False, allow_null=True)


class LineQuantitySerializer(serializers.Serializer):
    qty = serializers.IntegerField(min_value=0)


class RequestFilterSerializer(serializers.Serializer):
    """Query parameters of the request list."""

    period = serializers.UUIDField(required=False)
    circle = serializers.UUIDField(required=False)


# === Admin actions ===

class ApproveQuantitySerializer(serializers.Serializer):
    article_id = serializers.UUIDField()
    approved_qty = serializers.IntegerField(min_value=0)


class DeliveryDateSerializer(serializers.Serializer):
    article_id = serializers.UUIDField()
    delivery_date = serializers.DateField(allow_null=True)


class OrderPeriodActionSerializer(serializers.Serializer):
    confirm = serializers.BooleanField(default=False)


class SetPeriodStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PeriodStatus.choices)


class BulkTransitionSerializer(serializers.Serializer):
    BULK_CHOICES = [
        (RequestStatus.DRAFT, RequestStatus.DRAFT.label),
        (RequestStatus.SUBMITTED, RequestStatus.SUBMITTED.label),
    ]

    from_statuses = serializers.ListField(
        child=serializers.ChoiceField(choices=BULK_CHOICES),
        allow_empty=False,
    )
    to_status = serializers.ChoiceField(choices=BULK_CHOICES)
    circle_id = serializers.UUIDField(required=False, allow_null=True)


# === Aggregation (read-only, built from service dataclasses) ===

class DemandLineSerializer(serializers.Serializer):
    line_id = serializers.UUIDField()
    request_id = serializers.UUIDField()
    circle_id = serializers.UUIDField()
    qty = serializers.IntegerField()
    qty_validated = serializers.IntegerField(allow_null=True)


class ArticleDemandSerializer(serializers.Serializer):
    article_id = serializers.UUIDField()
    article_label = serializers.SerializerMethodField()
    total_qty = serializers.IntegerField()
    approved_qty = serializers.IntegerField(allow_null=True)
    is_confirmed = serializers.BooleanField()
    lines = DemandLineSerializer(many=True)

    def get_article_label(self, obj):
        return self.context.get('labels', {}).get(obj.article_id, '')


class CircleArticleDemandSerializer(serializers.Serializer):
    circle_id = serializers.UUIDField()
    circle_name = serializers.CharField()
    article_id = serializers.UUIDField()
    article_label = serializers.CharField()
    qty = serializers.IntegerField()
    effective_qty = serializers.IntegerField()


# === Reception ===

class ReceptionFilterSerializer(serializers.Serializer):
    """Query parameters of the reception worklist."""

    period = serializers.ListField(child=serializers.UUIDField(), required=False)


class OutstandingLineSerializer(serializers.Serializer):
    line_id = serializers.UUIDField()
    request_id = serializers.UUIDField()
    qty_validated = serializers.IntegerField()
    qty_received = serializers.IntegerField()
    remaining = serializers.IntegerField()


class ReceptionGroupSerializer(serializers.Serializer):
    period_id = serializers.UUIDField(source='key.period_id')
    article_id = serializers.UUIDField(source='key.article_id')
    delivery_date = serializers.DateField(source='key.delivery_date', allow_null=True)
    period_name = serializers.CharField()
    article_label = serializers.CharField()
    article_reference = serializers.CharField()
    supplier = serializers.CharField()
    remaining = serializers.IntegerField()
    lines = OutstandingLineSerializer(many=True)


class ReceptionDecisionSerializer(serializers.Serializer):
    period_id = serializers.UUIDField()
    article_id = serializers.UUIDField()
    delivery_date = serializers.DateField(allow_null=True, default=None)
    status = serializers.ChoiceField(choices=ReceptionStatus.choices)
    qty = serializers.IntegerField(allow_null=True, default=None)
    comment = serializers.CharField(allow_blank=True, default='')

    def validate(self, data):
        if data['status'] == ReceptionStatus.PARTIAL and data.get('qty') is None:
            raise serializers.ValidationError({'qty': 'Required for a partial reception.'})
        return data


class ReceptionSessionSerializer(serializers.Serializer):
    """One reception session: a decision per group."""

    decisions = ReceptionDecisionSerializer(many=True, allow_empty=False)

    def get_decisions(self):
        return [
            ReceptionDecision(
                key=ReceptionKey(
                    period_id=item['period_id'],
                    article_id=item['article_id'],
                    delivery_date=item['delivery_date'],
                ),
                status=item['status'],
                qty=item['qty'],
                comment=item['comment'],
            )
            for item in self.validated_data['decisions']
        ]


class ReceptionResultSerializer(serializers.Serializer):
    lines_updated = serializers.IntegerField()
    request_statuses = serializers.DictField(child=serializers.CharField())
    period_statuses = serializers.DictField(child=serializers.CharField())
