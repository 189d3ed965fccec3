# ================================================================
# nowpayments/urls.py
# ================================================================
from django.urls import path
from .views import WebhookView, ConfirmPaymentView

app_name = 'nowpayments'

urlpatterns = [
    path('webhook/', WebhookView.as_view(), name='webhook'),
    path('confirm-payment/', ConfirmPaymentView.as_view(), name='confirm_payment'),
]
