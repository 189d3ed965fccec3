from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse

def health_view(request):
    return JsonResponse({"status": "ok"})

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_view),
    # NOWPayments endpoints (из payments/nowpayments/urls.py)
    path(
        "api/payments/nowpayments/",
        include(("payments.nowpayments.urls", "nowpayments"), namespace="nowpayments"),
    ),
]
