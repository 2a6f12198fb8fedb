from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .serializers import MyCirclesSerializer
from .services import get_user_circles, is_finadmin


@extend_schema(
    responses={200: MyCirclesSerializer},
    description="Get the circles of the current member and whether they hold the FinAdmin role.",
    tags=['circles'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_circles(request):
    """Get all circles where user is a member."""
    serializer = MyCirclesSerializer({
        'circles': get_user_circles(user=request.user),
        'is_finadmin': is_finadmin(user=request.user),
    })
    return Response(serializer.data)
