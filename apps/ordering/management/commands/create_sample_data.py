"""
Management command to create sample data for trying the API.

Usage:
    python manage.py create_sample_data

This creates:
- 4 members (admin, alice, bob, charlie)
- 3 circles (FinAdmin, Cercle Nord, Cercle Sud)
- 6 catalog articles
- The current and next periods
- Submitted requests for alice and bob in the current period
"""

from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction

from apps.accounts.models import User
from apps.catalog.models import Article
from apps.circles.models import Circle, CircleMembership
from apps.ordering.context import OrderingContext
from apps.ordering.models import CircleRequest, OrderPeriod, RequestLine, RequestStatus
from apps.ordering.services import (
    LineInput,
    ensure_upcoming_periods,
    submit_cart,
    submit_request,
)


class Command(BaseCommand):
    help = 'Create sample data for trying the API'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before creating new sample data',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data()

        self.stdout.write('Creating sample data...')

        users = self.create_users()
        circles = self.create_circles(users)
        articles = self.create_articles()
        self.create_requests(users, circles, articles)

        self.stdout.write(self.style.SUCCESS('Sample data created successfully!'))
        self.stdout.write('')
        self.stdout.write('Test accounts:')
        self.stdout.write('  admin@example.com / admin123 (FinAdmin)')
        self.stdout.write('  alice@example.com / password123')
        self.stdout.write('  bob@example.com / password123')
        self.stdout.write('  charlie@example.com / password123')

    def clear_data(self):
        """Clear all ordering data from the database."""
        RequestLine.objects.all().delete()
        CircleRequest.objects.all().delete()
        OrderPeriod.objects.all().delete()
        Article.objects.all().delete()
        CircleMembership.objects.all().delete()
        Circle.objects.all().delete()
        User.objects.filter(email__endswith='@example.com').delete()

    def create_users(self):
        """Create test members."""
        self.stdout.write('  Creating members...')

        users = {}
        for key, display_name, password in [
            ('admin', 'Admin User', 'admin123'),
            ('alice', 'Alice Martin', 'password123'),
            ('bob', 'Bob Durand', 'password123'),
            ('charlie', 'Charlie Petit', 'password123'),
        ]:
            user, _ = User.objects.get_or_create(
                email=f'{key}@example.com',
                defaults={'display_name': display_name},
            )
            user.set_password(password)
            user.save()
            users[key] = user
        return users

    def create_circles(self, users):
        """Create circles and memberships."""
        self.stdout.write('  Creating circles...')

        finadmin, _ = Circle.objects.get_or_create(name=settings.FINADMIN_CIRCLE_NAME)
        north, _ = Circle.objects.get_or_create(name='Cercle Nord')
        south, _ = Circle.objects.get_or_create(name='Cercle Sud')

        for user, circle in [
            (users['admin'], finadmin),
            (users['alice'], north),
            (users['bob'], south),
            (users['charlie'], north),
            (users['charlie'], south),
        ]:
            CircleMembership.objects.get_or_create(user=user, circle=circle)

        return {'north': north, 'south': south}

    def create_articles(self):
        """Create catalog articles."""
        self.stdout.write('  Creating articles...')

        article_data = [
            ('Farine T65 bio', 'FAR-T65', 'Moulin de la Vallée', Decimal('1.85')),
            ('Huile d\'olive 1L', 'HUI-OL1', 'Domaine Oliva', Decimal('9.40')),
            ('Lentilles vertes 1kg', 'LEN-V1', 'Coop Légumes', Decimal('3.20')),
            ('Riz basmati 1kg', 'RIZ-B1', 'Coop Légumes', Decimal('2.95')),
            ('Savon de Marseille', 'SAV-M', 'Savonnerie du Sud', Decimal('4.10')),
            ('Café moulu 250g', 'CAF-250', 'Torréfaction Locale', Decimal('5.60')),
        ]

        articles = []
        for label, reference, supplier, unit_price in article_data:
            article, _ = Article.objects.get_or_create(
                reference=reference,
                defaults={
                    'label': label,
                    'supplier': supplier,
                    'unit_price': unit_price,
                },
            )
            articles.append(article)
        return articles

    def create_requests(self, users, circles, articles):
        """Create the current periods and two submitted carts."""
        self.stdout.write('  Creating periods and requests...')

        current, _ = ensure_upcoming_periods(OrderingContext(actor=None))

        carts = [
            (users['alice'], circles['north'], [(articles[0], 5), (articles[2], 2)]),
            (users['bob'], circles['south'], [(articles[0], 3), (articles[5], 4)]),
        ]
        for user, circle, lines in carts:
            ctx = OrderingContext(actor=user)
            already = CircleRequest.objects.filter(created_by=user, circle=circle, period=current)
            if already.exclude(status=RequestStatus.DRAFT).exists():
                continue
            request = submit_cart(
                ctx,
                circle_id=circle.id,
                lines=[LineInput(article_id=article.id, qty=qty) for article, qty in lines],
            )
            submit_request(ctx, request_id=request.id)
