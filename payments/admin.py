import logging

import stripe
from django.contrib import admin

from .models import PackOrder
from .services import email_pack_checkout_link

logger = logging.getLogger(__name__)


@admin.register(PackOrder)
class PackOrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'campaign', 'pack_type', 'amount', 'payment_status', 'paid_at',
                    'payment_link_sent_at', 'created_at')
    list_filter = ('payment_status', 'pack_type', 'created_at')
    search_fields = ('campaign__title', 'campaign__email', 'stripe_payment_intent_id')
    date_hierarchy = 'created_at'
    readonly_fields = ('payment_status', 'paid_at', 'stripe_payment_intent_id',
                       'stripe_checkout_session_id', 'payment_link_sent_at', 'created_at', 'updated_at')
    actions = ['email_payment_link']

    @admin.action(description='Email a payment link for selected unpaid orders')
    def email_payment_link(self, request, queryset):
        sent = 0
        for order in queryset.filter(payment_status=PackOrder.STATUS_PENDING).select_related('campaign'):
            try:
                if email_pack_checkout_link(order):
                    sent += 1
                else:
                    self.message_user(request, f"Order {order.id}: the email could not be queued.", level='error')
            except stripe.StripeError as e:
                logger.error(f"Failed to create payment link for pack order {order.id}: {e}", exc_info=True)
                self.message_user(request, f"Order {order.id}: {e}", level='error')
        self.message_user(request, f"Payment link emailed for {sent} order(s).")
