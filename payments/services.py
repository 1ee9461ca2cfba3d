import json
import logging

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.utils import timezone

from campaigns.models import Campaign
from core.email_utils import send_transactional_email

from .models import PackOrder

logger = logging.getLogger(__name__)
stripe.api_key = settings.STRIPE_SECRET_KEY

SUCCESS_EVENT_TYPES = ('checkout.session.completed', 'payment_intent.succeeded')
FAILURE_EVENT_TYPES = ('payment_intent.payment_failed',)

# --- RECONCILIATION OUTCOMES ---
OUTCOME_APPLIED = 'applied'
OUTCOME_DUPLICATE = 'duplicate'
OUTCOME_IGNORED = 'ignored'
OUTCOME_UNRESOLVED = 'unresolved'


class WebhookSignatureError(Exception):
    """The Stripe-Signature header is missing or does not match the payload."""


class PackOrderSyncError(Exception):
    """A pack order status change could not be mirrored onto its campaign."""


# --- ORDER CREATION ---

def create_pack_order(campaign, pack, shipping):
    """
    Creates the pending PackOrder for a freshly created campaign and links
    it back to the campaign. Callers are expected to hold a transaction.
    """
    order = PackOrder.objects.create(
        campaign=campaign,
        user=campaign.owner,
        pack_type=pack.pack,
        amount=pack.price,
        tshirt_sizes=pack.sizes(),
        shipping_address=shipping.snapshot(),
        mobile_number=shipping.mobile_number,
    )
    campaign.pack_order = order
    campaign.pack_payment_status = order.payment_status
    campaign.save(update_fields=['pack_order', 'pack_payment_status', 'updated_at'])
    logger.info(f"Created pack order {order.id} ({order.pack_type}, EUR {order.amount}) for campaign {campaign.id}.")
    return order


# --- STRIPE PAYMENT SURFACES ---

def get_or_create_pack_payment_intent(order):
    """Returns the order's PaymentIntent, creating and storing one on first use."""
    if order.stripe_payment_intent_id:
        return stripe.PaymentIntent.retrieve(order.stripe_payment_intent_id)

    intent = stripe.PaymentIntent.create(
        amount=order.amount_cents,
        currency=settings.PACK_CURRENCY,
        automatic_payment_methods={'enabled': True},
        receipt_email=order.campaign.email,
        description=f"{order.pack_name} for {order.campaign.title}",
        metadata={
            'pack_order_id': str(order.id),
            'campaign_id': str(order.campaign_id),
        },
    )
    order.stripe_payment_intent_id = intent.id
    order.save(update_fields=['stripe_payment_intent_id', 'updated_at'])
    logger.info(f"Created PaymentIntent {intent.id} for pack order {order.id}.")
    return intent


def create_pack_checkout_link(order):
    """Creates a Stripe Checkout session for an unpaid pack order and returns its URL."""
    campaign = order.campaign
    checkout_session = stripe.checkout.Session.create(
        mode='payment',
        payment_method_types=['card'],
        customer_email=campaign.email,
        line_items=[{
            'price_data': {
                'currency': settings.PACK_CURRENCY,
                'product_data': {
                    'name': f"Coffee Morning {order.pack_name}",
                    'description': f"Starter pack for {campaign.title}",
                },
                'unit_amount': order.amount_cents,
            },
            'quantity': 1,
        }],
        metadata={
            'pack_order_id': str(order.id),
            'campaign_id': str(campaign.id),
        },
        payment_intent_data={
            'metadata': {'pack_order_id': str(order.id)},
        },
        success_url=f"{settings.SITE_URL}/?pack_payment=success&order={order.id}",
        cancel_url=f"{settings.SITE_URL}/?pack_payment=cancelled&order={order.id}",
    )
    order.stripe_checkout_session_id = checkout_session.id
    order.save(update_fields=['stripe_checkout_session_id', 'updated_at'])
    return checkout_session.url


def email_pack_checkout_link(order):
    """
    Emails a fresh Checkout link to the organiser. The order is only marked
    as reminded when the email was handed to the queue; returns whether it was.
    """
    campaign = order.campaign
    payment_link = create_pack_checkout_link(order)
    queued = send_transactional_email(
        recipient_email=campaign.email,
        subject=f"Complete your starter pack order for {campaign.title}",
        template_name='emails/pack_payment_link.html',
        context={
            'campaign_id': campaign.id,
            'pack_order_id': order.id,
            'payment_link': payment_link,
        },
    )
    if not queued:
        logger.warning(f"Payment link for pack order {order.id} was not queued; it will be retried.")
        return False

    order.payment_link_sent_at = timezone.now()
    order.save(update_fields=['payment_link_sent_at', 'updated_at'])
    return True


# --- WEBHOOK RECONCILIATION ---

def construct_stripe_event(payload, sig_header):
    """
    Verifies and parses a webhook body into a plain dict.

    Raises WebhookSignatureError for a missing or bad signature, ValueError
    for a malformed body and ImproperlyConfigured when no signing secret is
    set and unverified events are not allowed.
    """
    secret = settings.STRIPE_WEBHOOK_SECRET
    if secret:
        if not sig_header:
            raise WebhookSignatureError("Missing Stripe-Signature header.")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode('utf-8'), sig_header, secret, stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e)) from e
    elif settings.STRIPE_WEBHOOK_ALLOW_UNVERIFIED:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set. Processing webhook without signature verification.")
    else:
        raise ImproperlyConfigured("STRIPE_WEBHOOK_SECRET is not set and unverified webhooks are not allowed.")

    event = json.loads(payload)
    if not isinstance(event, dict) or not event.get('type'):
        raise ValueError("Payload is not a Stripe event.")
    return event


def _event_object(event):
    return (event.get('data') or {}).get('object') or {}


def _event_payment_intent_id(event):
    obj = _event_object(event)
    event_type = event.get('type', '')
    if event_type.startswith('payment_intent.'):
        return obj.get('id')
    payment_intent = obj.get('payment_intent')
    if isinstance(payment_intent, dict):
        return payment_intent.get('id')
    return payment_intent


def resolve_pack_order_id(event):
    """
    Finds the pack order an event refers to: the pack_order_id in the
    object's metadata first, then the stored PaymentIntent id. Returns None
    when neither identifies an order.
    """
    metadata = _event_object(event).get('metadata') or {}
    pack_order_id = metadata.get('pack_order_id')
    if pack_order_id:
        try:
            return int(pack_order_id)
        except (TypeError, ValueError):
            logger.warning(f"Stripe event {event.get('id')} has a malformed pack_order_id: {pack_order_id!r}")
            return None

    payment_intent_id = _event_payment_intent_id(event)
    if payment_intent_id:
        return (
            PackOrder.objects
            .filter(stripe_payment_intent_id=payment_intent_id)
            .values_list('id', flat=True)
            .first()
        )
    return None


def _queue_payment_confirmation(order_id):
    order = PackOrder.objects.select_related('campaign').get(pk=order_id)
    send_transactional_email(
        recipient_email=order.campaign.email,
        subject=f"Your {order.pack_name} is on its way",
        template_name='emails/pack_payment_confirmed.html',
        context={'campaign_id': order.campaign_id, 'pack_order_id': order.id},
    )


def apply_pack_payment_status(pack_order_id, new_status, payment_intent_id=None):
    """
    Moves a pending pack order to completed or failed and mirrors the
    status onto its campaign, all in one transaction. Orders that already
    left pending are not changed, but the mirror is rewritten so a
    redelivered event repairs any divergence.
    """
    with transaction.atomic():
        order = PackOrder.objects.select_for_update().filter(pk=pack_order_id).first()
        if order is None:
            logger.warning(f"Pack order {pack_order_id} from Stripe event does not exist.")
            return OUTCOME_UNRESOLVED

        now = timezone.now()
        changes = {'payment_status': new_status, 'updated_at': now}
        if new_status == PackOrder.STATUS_COMPLETED:
            changes['paid_at'] = now
        applied = PackOrder.objects.filter(
            pk=order.pk, payment_status=PackOrder.STATUS_PENDING,
        ).update(**changes) == 1

        if (payment_intent_id and not order.stripe_payment_intent_id
                and not PackOrder.objects.filter(stripe_payment_intent_id=payment_intent_id).exists()):
            PackOrder.objects.filter(pk=order.pk).update(stripe_payment_intent_id=payment_intent_id)

        order.refresh_from_db()
        mirrored = Campaign.objects.filter(pack_order=order).update(
            pack_payment_status=order.payment_status, updated_at=now,
        )
        if not mirrored:
            raise PackOrderSyncError(
                f"Pack order {order.pk} is {order.payment_status} but no campaign links to it."
            )

        if applied and new_status == PackOrder.STATUS_COMPLETED:
            transaction.on_commit(lambda: _queue_payment_confirmation(order.pk))

    if applied:
        logger.info(f"Pack order {order.pk} marked {new_status}.")
        return OUTCOME_APPLIED

    logger.info(f"Pack order {order.pk} already {order.payment_status}; {new_status} event not applied.")
    return OUTCOME_DUPLICATE


def reconcile_pack_payment_event(event):
    """Applies one parsed Stripe event to its pack order and returns the outcome."""
    event_type = event.get('type')
    if event_type in SUCCESS_EVENT_TYPES:
        new_status = PackOrder.STATUS_COMPLETED
    elif event_type in FAILURE_EVENT_TYPES:
        new_status = PackOrder.STATUS_FAILED
    else:
        logger.info(f"Ignoring Stripe event {event.get('id')} of type {event_type}.")
        return OUTCOME_IGNORED

    pack_order_id = resolve_pack_order_id(event)
    if pack_order_id is None:
        logger.warning(f"Stripe event {event.get('id')} ({event_type}) does not match any pack order. Dropping it.")
        return OUTCOME_UNRESOLVED

    return apply_pack_payment_status(
        pack_order_id, new_status, payment_intent_id=_event_payment_intent_id(event),
    )
