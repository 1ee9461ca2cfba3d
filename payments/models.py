from django.conf import settings
from django.db import models

from campaigns.constants import PACK_CHOICES, PACK_OPTIONS


class PackOrder(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    campaign = models.ForeignKey('campaigns.Campaign', on_delete=models.CASCADE, related_name='pack_orders')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='pack_orders',
    )
    pack_type = models.CharField(max_length=10, choices=PACK_CHOICES)
    amount = models.DecimalField(max_digits=8, decimal_places=2, help_text="Amount charged in EUR.")
    tshirt_sizes = models.JSONField(default=list, blank=True)
    shipping_address = models.JSONField(default=dict, help_text="Snapshot of the address at time of order.")
    mobile_number = models.CharField(max_length=30, blank=True)

    payment_status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True,
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    stripe_payment_intent_id = models.CharField(max_length=255, null=True, blank=True, unique=True)
    stripe_checkout_session_id = models.CharField(max_length=255, null=True, blank=True)
    payment_link_sent_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.pack_name} for campaign {self.campaign_id} ({self.get_payment_status_display()})"

    @property
    def pack_name(self):
        return PACK_OPTIONS[self.pack_type]['name']

    @property
    def amount_cents(self):
        return int(self.amount * 100)

    @property
    def is_pending(self):
        return self.payment_status == self.STATUS_PENDING
