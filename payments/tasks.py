from celery import shared_task
from django.utils import timezone
from datetime import timedelta
import logging

import stripe

from payments.models import PackOrder
from payments.services import email_pack_checkout_link

logger = logging.getLogger(__name__)


@shared_task
def send_pack_payment_reminders_task(hours_ago=24):
    """
    Emails a Stripe Checkout link to organisers whose pack order is still
    unpaid `hours_ago` hours after the campaign was created. Each order is
    reminded once.
    """
    cutoff = timezone.now() - timedelta(hours=hours_ago)
    unpaid_orders = PackOrder.objects.filter(
        payment_status=PackOrder.STATUS_PENDING,
        payment_link_sent_at__isnull=True,
        created_at__lte=cutoff,
        campaign__is_active=True,
    ).select_related('campaign')

    logger.info(f"Found {unpaid_orders.count()} unpaid pack orders to remind.")

    sent = 0
    for order in unpaid_orders:
        try:
            if not email_pack_checkout_link(order):
                continue
            sent += 1
            logger.info(f"Sent pack payment reminder for order {order.id} to {order.campaign.email}.")
        except stripe.StripeError as e:
            logger.error(f"Failed to send pack payment reminder for order {order.id}. Error: {e}")

    return f"Sent {sent} pack payment reminders."
