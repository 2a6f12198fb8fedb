from django.urls import path
from . import views

app_name = 'circles'

urlpatterns = [
    # GET /api/circles/my/ - Current member's circles
    path('my/', views.my_circles, name='my-circles'),
]
