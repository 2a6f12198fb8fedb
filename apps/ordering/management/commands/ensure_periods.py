"""
Management command to make sure the current and next periods exist.

Meant for a scheduled job so the next half-month period is there before
its first day.

Usage:
    python manage.py ensure_periods
    python manage.py ensure_periods --date 2025-01-14
"""

from datetime import datetime, time

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from apps.ordering.context import OrderingContext
from apps.ordering.services import ensure_upcoming_periods


class Command(BaseCommand):
    help = 'Create the current and next ordering periods if they are missing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Reference date (YYYY-MM-DD) instead of today',
        )

    def handle(self, *args, **options):
        now = timezone.now()
        if options['date']:
            try:
                day = datetime.strptime(options['date'], '%Y-%m-%d').date()
            except ValueError:
                raise CommandError(f"Invalid date '{options['date']}', expected YYYY-MM-DD")
            now = timezone.make_aware(datetime.combine(day, time(12, 0)))

        current, upcoming = ensure_upcoming_periods(OrderingContext(actor=None, now=now))

        self.stdout.write(f'Current period: {current.name} ({current.get_status_display()})')
        self.stdout.write(f'Next period:    {upcoming.name} ({upcoming.get_status_display()})')
        self.stdout.write(self.style.SUCCESS('Periods are up to date.'))
