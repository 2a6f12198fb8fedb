"""
Circle membership tests.

Tests cover:
- Member circles lookup
- FinAdmin role resolution
- The my-circles endpoint
"""

import pytest
from django.urls import reverse
from rest_framework import status

from apps.accounts.models import User
from apps.circles.services import get_user_circles, is_circle_member, is_finadmin


@pytest.mark.django_db
class TestCircleServices:

    def test_user_circles_sorted_by_name(self, member, circles):
        assert [c.name for c in get_user_circles(user=member)] == ['Cercle Nord', 'Cercle Sud']

    def test_is_circle_member(self, member, finadmin, circles):
        assert is_circle_member(user=member, circle_id=circles['north'].id)
        assert not is_circle_member(user=finadmin, circle_id=circles['north'].id)

    def test_finadmin_by_membership(self, member, finadmin, circles):
        assert is_finadmin(user=finadmin)
        assert not is_finadmin(user=member)

    def test_finadmin_circle_name_override(self, member, circles):
        assert is_finadmin(user=member, circle_name='Cercle Nord')

    def test_superuser_is_finadmin(self, db):
        root = User.objects.create_superuser(email='root@example.com', password='TestPass123!')

        assert is_finadmin(user=root)

    def test_no_user(self):
        assert not is_finadmin(user=None)

    def test_circle_flags_finadmin(self, circles):
        assert circles['finadmin'].is_finadmin
        assert not circles['north'].is_finadmin


@pytest.mark.django_db
class TestMyCirclesEndpoint:

    def test_lists_member_circles(self, member_client, circles):
        response = member_client.get(reverse('circles:my-circles'))

        assert response.status_code == status.HTTP_200_OK
        assert [c['name'] for c in response.data['circles']] == ['Cercle Nord', 'Cercle Sud']
        assert response.data['is_finadmin'] is False

    def test_requires_authentication(self, api_client):
        response = api_client.get(reverse('circles:my-circles'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
