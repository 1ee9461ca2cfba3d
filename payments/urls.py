from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('webhook/', views.stripe_webhook, name='webhook'),
    path('pack/<int:pack_order_id>/intent/', views.create_pack_payment_intent, name='pack_payment_intent'),
]
