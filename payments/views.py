import logging

import stripe
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .models import PackOrder
from .services import (
    PackOrderSyncError, WebhookSignatureError, construct_stripe_event,
    get_or_create_pack_payment_intent, reconcile_pack_payment_event,
)

logger = logging.getLogger(__name__)


@login_required
@require_POST
def create_pack_payment_intent(request, pack_order_id):
    """Returns the client secret the Payment step needs to confirm the pack payment."""
    order = get_object_or_404(PackOrder.objects.select_related('campaign'), pk=pack_order_id, user=request.user)
    if not order.is_pending:
        return JsonResponse(
            {'error': 'This pack order has already been processed.', 'status': order.payment_status},
            status=409,
        )

    try:
        intent = get_or_create_pack_payment_intent(order)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating PaymentIntent for pack order {order.id}: {e}", exc_info=True)
        return JsonResponse({'error': 'Payment could not be started. Please try again.'}, status=502)

    return JsonResponse({
        'clientSecret': intent.client_secret,
        'paymentIntentId': intent.id,
        'amount': order.amount_cents,
    })


@csrf_exempt
@require_POST
def stripe_webhook(request):
    payload = request.body
    sig_header = request.META.get('HTTP_STRIPE_SIGNATURE')

    try:
        event = construct_stripe_event(payload, sig_header)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        return HttpResponse("Invalid signature", status=400)
    except ValueError:
        return HttpResponse("Invalid payload", status=400)
    except ImproperlyConfigured as e:
        logger.error(f"Stripe webhook refused: {e}")
        return HttpResponse("Webhook not configured", status=500)

    try:
        outcome = reconcile_pack_payment_event(event)
    except PackOrderSyncError as e:
        logger.error(f"Stripe event {event.get('id')} rolled back: {e}", exc_info=True)
        return HttpResponse("Webhook processing error", status=500)
    except DatabaseError as e:
        logger.error(f"Database error processing Stripe event {event.get('id')}: {e}", exc_info=True)
        return HttpResponse("Webhook processing error", status=500)

    return JsonResponse({'received': True, 'outcome': outcome})
