import pytest
from decimal import Decimal
from django.conf import settings
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User
from apps.catalog.models import Article
from apps.circles.models import Circle, CircleMembership
from apps.ordering.context import OrderingContext
from apps.ordering.models import CircleRequest, RequestLine, RequestStatus
from apps.ordering.services import get_current_period


def authenticate(client, user):
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


# =============================================================================
# Members and circles
# =============================================================================

@pytest.fixture
def member(db):
    """Member of circle A."""
    return User.objects.create_user(
        email='alice@example.com',
        password='TestPass123!',
        display_name='Alice',
    )


@pytest.fixture
def other_member(db):
    """Member of circle B."""
    return User.objects.create_user(
        email='bob@example.com',
        password='TestPass123!',
        display_name='Bob',
    )


@pytest.fixture
def outsider(db):
    """User not in any circle."""
    return User.objects.create_user(
        email='outsider@example.com',
        password='TestPass123!',
        display_name='Outsider',
    )


@pytest.fixture
def finadmin(db):
    """Member of the FinAdmin circle."""
    return User.objects.create_user(
        email='finadmin@example.com',
        password='TestPass123!',
        display_name='Fin Admin',
    )


@pytest.fixture
def circle_a(db, member):
    circle = Circle.objects.create(name='Cercle A')
    CircleMembership.objects.create(user=member, circle=circle)
    return circle


@pytest.fixture
def circle_b(db, other_member):
    circle = Circle.objects.create(name='Cercle B')
    CircleMembership.objects.create(user=other_member, circle=circle)
    return circle


@pytest.fixture
def finadmin_circle(db, finadmin):
    circle = Circle.objects.create(name=settings.FINADMIN_CIRCLE_NAME)
    CircleMembership.objects.create(user=finadmin, circle=circle)
    return circle


# =============================================================================
# Contexts
# =============================================================================

@pytest.fixture
def member_ctx(member, circle_a):
    return OrderingContext(actor=member)


@pytest.fixture
def other_ctx(other_member, circle_b):
    return OrderingContext(actor=other_member)


@pytest.fixture
def outsider_ctx(outsider):
    return OrderingContext(actor=outsider)


@pytest.fixture
def admin_ctx(finadmin, finadmin_circle):
    return OrderingContext(actor=finadmin)


# =============================================================================
# Catalog and periods
# =============================================================================

@pytest.fixture
def article_x(db):
    return Article.objects.create(
        label='Farine T65',
        reference='FAR-T65',
        supplier='Moulin',
        unit_price=Decimal('2.50'),
    )


@pytest.fixture
def article_y(db):
    return Article.objects.create(
        label='Huile d\'olive',
        reference='HUI-1L',
        supplier='Oliva',
        unit_price=Decimal('10.00'),
    )


@pytest.fixture
def inactive_article(db):
    return Article.objects.create(label='Ancien article', active=False)


@pytest.fixture
def period(db, member_ctx):
    """Current (open) period."""
    return get_current_period(member_ctx)


@pytest.fixture
def make_request(db, period):
    """
    Factory writing a request and its lines straight to the store.

    Usage: make_request(user, circle, [(article, qty), ...], status='submitted')
    """
    def _make(user, circle, lines, status=RequestStatus.SUBMITTED, for_period=None):
        request = CircleRequest.objects.create(
            circle=circle,
            period=for_period or period,
            created_by=user,
            status=status,
        )
        for article, qty in lines:
            RequestLine.objects.create(request=request, article=article, qty=qty)
        return request
    return _make


@pytest.fixture
def demand_5_3(make_request, member, other_member, circle_a, circle_b, article_x):
    """Circle A asks 5 x article X, circle B asks 3 x article X, both submitted."""
    request_a = make_request(member, circle_a, [(article_x, 5)])
    request_b = make_request(other_member, circle_b, [(article_x, 3)])
    return request_a, request_b


# =============================================================================
# API clients
# =============================================================================

@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def member_client(member, circle_a):
    """API client authenticated as the circle A member."""
    return authenticate(APIClient(), member)


@pytest.fixture
def other_client(other_member, circle_b):
    return authenticate(APIClient(), other_member)


@pytest.fixture
def admin_client(finadmin, finadmin_circle):
    """API client authenticated as a FinAdmin."""
    return authenticate(APIClient(), finadmin)
