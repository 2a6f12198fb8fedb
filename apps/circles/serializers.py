from rest_framework import serializers
from .models import Circle


class CircleSerializer(serializers.ModelSerializer):
    """Circle reference data."""
    
    class Meta:
        model = Circle
        fields = ['id', 'name']
        read_only_fields = fields


class MyCirclesSerializer(serializers.Serializer):
    """Current member's circles and role."""
    
    circles = CircleSerializer(many=True)
    is_finadmin = serializers.BooleanField()
