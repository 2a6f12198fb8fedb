import pytest
from django.conf import settings
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.circles.models import Circle, CircleMembership


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def member(db):
    """Member of both neighbourhood circles."""
    return User.objects.create_user(
        email='member@example.com',
        password='TestPass123!',
        display_name='Circle Member',
    )


@pytest.fixture
def finadmin(db):
    return User.objects.create_user(
        email='finadmin@example.com',
        password='TestPass123!',
        display_name='Fin Admin',
    )


@pytest.fixture
def circles(db, member, finadmin):
    """Two circles for the member, the FinAdmin circle for finadmin."""
    south = Circle.objects.create(name='Cercle Sud')
    north = Circle.objects.create(name='Cercle Nord')
    admins = Circle.objects.create(name=settings.FINADMIN_CIRCLE_NAME)
    CircleMembership.objects.create(user=member, circle=south)
    CircleMembership.objects.create(user=member, circle=north)
    CircleMembership.objects.create(user=finadmin, circle=admins)
    return {'north': north, 'south': south, 'finadmin': admins}


@pytest.fixture
def member_client(api_client, member):
    """API client authenticated as the circle member."""
    refresh = RefreshToken.for_user(member)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client
