import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('circles', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='OrderPeriod',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100, unique=True)),
                ('cutoff_date', models.DateField()),
                ('status', models.CharField(choices=[('open', 'Open'), ('ordered', 'Ordered'), ('waiting', 'Awaiting delivery'), ('closed', 'Closed'), ('archived', 'Archived')], default='open', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'order_periods',
                'ordering': ['-cutoff_date'],
                'indexes': [models.Index(fields=['status', 'cutoff_date'], name='order_periods_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='CircleRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('submitted', 'Submitted'), ('validated', 'Ordered'), ('waiting', 'Partially received'), ('received', 'Received'), ('cancelled', 'Cancelled')], default='draft', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('circle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='requests', to='circles.circle')),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='circle_requests', to=settings.AUTH_USER_MODEL)),
                ('period', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='requests', to='ordering.orderperiod')),
            ],
            options={
                'db_table': 'circle_requests',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['period', 'status'], name='circle_requests_period_idx')],
                'unique_together': {('circle', 'period', 'created_by')},
            },
        ),
        migrations.CreateModel(
            name='RequestLine',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('qty', models.PositiveIntegerField(validators=[MinValueValidator(1)])),
                ('qty_validated', models.PositiveIntegerField(blank=True, null=True)),
                ('qty_received', models.PositiveIntegerField(blank=True, null=True)),
                ('delivery_date', models.DateField(blank=True, null=True)),
                ('reception_status', models.CharField(blank=True, choices=[('totaly', 'Fully received'), ('partialy', 'Partially received'), ('none', 'Not received')], max_length=10, null=True)),
                ('reception_comment', models.TextField(blank=True)),
                ('reception_date', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('article', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='request_lines', to='catalog.article')),
                ('reception_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='received_lines', to=settings.AUTH_USER_MODEL)),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='ordering.circlerequest')),
            ],
            options={
                'db_table': 'request_lines',
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['article', 'delivery_date'], name='request_lines_article_idx')],
            },
        ),
    ]
