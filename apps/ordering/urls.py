from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'ordering'

# Router for ViewSets
router = DefaultRouter()
router.register(r'periods', views.OrderPeriodViewSet, basename='period')
router.register(r'requests', views.CircleRequestViewSet, basename='request')

urlpatterns = [
    # Period ViewSet routes
    # GET    /api/ordering/periods/                       - List active periods
    # POST   /api/ordering/periods/                       - Create period (FinAdmin)
    # GET    /api/ordering/periods/{id}/                  - Period details
    # GET    /api/ordering/periods/current/               - Current period (created if needed)
    # POST   /api/ordering/periods/ensure/                - Ensure current and next periods
    # GET    /api/ordering/periods/{id}/demand/           - Per-article demand
    # GET    /api/ordering/periods/{id}/totals/           - Money total per request status
    # GET    /api/ordering/periods/{id}/circles/          - Per-circle breakdown
    # POST   /api/ordering/periods/{id}/approve/          - Approve aggregate quantity (FinAdmin)
    # POST   /api/ordering/periods/{id}/delivery_date/    - Set delivery date (FinAdmin)
    # POST   /api/ordering/periods/{id}/order/            - Place the order (FinAdmin)
    # POST   /api/ordering/periods/{id}/set_status/       - Force status (FinAdmin)
    # POST   /api/ordering/periods/{id}/bulk_transition/  - Bulk draft/submitted moves (FinAdmin)

    # Request ViewSet routes
    # GET    /api/ordering/requests/                      - Visible requests
    # GET    /api/ordering/requests/{id}/                 - Request details
    # POST   /api/ordering/requests/cart/                 - Validate cart
    # PUT    /api/ordering/requests/{id}/lines/           - Replace draft lines
    # POST   /api/ordering/requests/{id}/submit/          - Submit draft
    # POST   /api/ordering/requests/{id}/rollback/        - Back to draft

    # Additional endpoints
    path('lines/<uuid:line_id>/', views.update_line, name='line-detail'),
    path('reception/', views.reception, name='reception'),

    # Include router URLs
    path('', include(router.urls)),
]
