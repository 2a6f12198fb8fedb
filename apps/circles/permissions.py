from rest_framework import permissions

from apps.circles.services import is_finadmin


class IsFinAdmin(permissions.BasePermission):
    """
    Permission: User must belong to the FinAdmin circle.
    """

    message = 'Only FinAdmin members can perform this action.'

    def has_permission(self, request, view):
        return is_finadmin(user=request.user)
