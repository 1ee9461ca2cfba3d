import hashlib
import hmac
import json
import time
import uuid
from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.core import mail
from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings
from django.utils import timezone

from accounts.models import User
from campaigns.models import Campaign
from campaigns.services import submit_campaign
from campaigns.test_services import filled_draft

from .models import PackOrder
from .services import (
    OUTCOME_APPLIED, OUTCOME_DUPLICATE, OUTCOME_IGNORED, OUTCOME_UNRESOLVED,
    PackOrderSyncError, WebhookSignatureError, apply_pack_payment_status,
    construct_stripe_event, create_pack_checkout_link, email_pack_checkout_link,
    get_or_create_pack_payment_intent,
    reconcile_pack_payment_event, resolve_pack_order_id,
)
from .tasks import send_pack_payment_reminders_task

WEBHOOK_SECRET = 'whsec_test_coffee'


def stripe_signature(payload, secret=WEBHOOK_SECRET, timestamp=None):
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode('utf-8')
    signature = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type, obj, event_id=None):
    return {
        'id': event_id or f"evt_{uuid.uuid4().hex[:12]}",
        'object': 'event',
        'type': event_type,
        'data': {'object': obj},
    }


def checkout_completed(order=None, payment_intent='pi_checkout_1'):
    metadata = {'pack_order_id': str(order.pk)} if order else {}
    return stripe_event('checkout.session.completed', {
        'id': 'cs_test_1', 'object': 'checkout.session',
        'payment_intent': payment_intent, 'metadata': metadata,
    })


def intent_event(event_type, intent_id, metadata=None):
    return stripe_event(event_type, {
        'id': intent_id, 'object': 'payment_intent', 'metadata': metadata or {},
    })


class PackOrderTestMixin:
    @classmethod
    def setUpTestData(cls):
        cls.owner = User.objects.create_user(
            email='sarah@example.com', password='password123', full_name='Sarah Byrne',
        )

    def setUp(self):
        self.campaign, self.order = submit_campaign(filled_draft(), self.owner, uuid.uuid4())

    def refresh(self):
        self.order.refresh_from_db()
        self.campaign.refresh_from_db()


class ConstructStripeEventTests(TestCase):
    def setUp(self):
        self.payload = json.dumps(intent_event('payment_intent.succeeded', 'pi_1'))

    def test_valid_signature_returns_plain_dict(self):
        event = construct_stripe_event(self.payload.encode(), stripe_signature(self.payload))
        self.assertIsInstance(event, dict)
        self.assertEqual(event['data']['object']['id'], 'pi_1')

    def test_missing_signature_is_rejected(self):
        with self.assertRaises(WebhookSignatureError):
            construct_stripe_event(self.payload.encode(), None)

    def test_wrong_secret_is_rejected(self):
        with self.assertRaises(WebhookSignatureError):
            construct_stripe_event(self.payload.encode(), stripe_signature(self.payload, secret='whsec_other'))

    def test_stale_timestamp_is_rejected(self):
        header = stripe_signature(self.payload, timestamp=int(time.time()) - 3600)
        with self.assertRaises(WebhookSignatureError):
            construct_stripe_event(self.payload.encode(), header)

    def test_tampered_payload_is_rejected(self):
        header = stripe_signature(self.payload)
        with self.assertRaises(WebhookSignatureError):
            construct_stripe_event(self.payload.replace('pi_1', 'pi_2').encode(), header)

    def test_malformed_payload_raises_value_error(self):
        with self.assertRaises(ValueError):
            construct_stripe_event(b'not json', stripe_signature('not json'))

    @override_settings(STRIPE_WEBHOOK_SECRET=None, STRIPE_WEBHOOK_ALLOW_UNVERIFIED=True)
    def test_unverified_events_when_explicitly_allowed(self):
        event = construct_stripe_event(self.payload.encode(), None)
        self.assertEqual(event['type'], 'payment_intent.succeeded')

    @override_settings(STRIPE_WEBHOOK_SECRET=None, STRIPE_WEBHOOK_ALLOW_UNVERIFIED=False)
    def test_missing_secret_is_a_configuration_error(self):
        with self.assertRaises(ImproperlyConfigured):
            construct_stripe_event(self.payload.encode(), None)


class ResolvePackOrderTests(PackOrderTestMixin, TestCase):
    def test_metadata_pack_order_id_wins(self):
        self.assertEqual(resolve_pack_order_id(checkout_completed(self.order)), self.order.pk)

    def test_checkout_session_resolved_by_stored_payment_intent(self):
        PackOrder.objects.filter(pk=self.order.pk).update(stripe_payment_intent_id='pi_stored')
        event = checkout_completed(payment_intent='pi_stored')
        self.assertEqual(resolve_pack_order_id(event), self.order.pk)

    def test_expanded_payment_intent_object(self):
        PackOrder.objects.filter(pk=self.order.pk).update(stripe_payment_intent_id='pi_stored')
        event = checkout_completed(payment_intent={'id': 'pi_stored', 'object': 'payment_intent'})
        self.assertEqual(resolve_pack_order_id(event), self.order.pk)

    def test_payment_intent_event_resolved_by_its_own_id(self):
        PackOrder.objects.filter(pk=self.order.pk).update(stripe_payment_intent_id='pi_stored')
        event = intent_event('payment_intent.succeeded', 'pi_stored')
        self.assertEqual(resolve_pack_order_id(event), self.order.pk)

    def test_unknown_event_resolves_to_none(self):
        self.assertIsNone(resolve_pack_order_id(checkout_completed(payment_intent='pi_unknown')))
        self.assertIsNone(resolve_pack_order_id(checkout_completed(payment_intent=None)))

    def test_malformed_metadata_resolves_to_none(self):
        event = intent_event('payment_intent.succeeded', 'pi_x', metadata={'pack_order_id': 'abc'})
        self.assertIsNone(resolve_pack_order_id(event))


class ReconcilePackPaymentTests(PackOrderTestMixin, TestCase):
    def test_success_completes_order_and_campaign_mirror(self):
        outcome = reconcile_pack_payment_event(checkout_completed(self.order))

        self.assertEqual(outcome, OUTCOME_APPLIED)
        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_COMPLETED)
        self.assertIsNotNone(self.order.paid_at)
        self.assertEqual(self.order.stripe_payment_intent_id, 'pi_checkout_1')
        self.assertEqual(self.campaign.pack_payment_status, PackOrder.STATUS_COMPLETED)

    def test_duplicate_success_keeps_first_paid_at(self):
        event = checkout_completed(self.order)
        reconcile_pack_payment_event(event)
        self.refresh()
        first_paid_at = self.order.paid_at

        outcome = reconcile_pack_payment_event(event)
        self.assertEqual(outcome, OUTCOME_DUPLICATE)
        self.refresh()
        self.assertEqual(self.order.paid_at, first_paid_at)
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_COMPLETED)

    def test_failure_after_completion_is_a_no_op(self):
        reconcile_pack_payment_event(checkout_completed(self.order))
        self.refresh()
        failed = intent_event('payment_intent.payment_failed', 'pi_checkout_1')

        self.assertEqual(reconcile_pack_payment_event(failed), OUTCOME_DUPLICATE)
        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_COMPLETED)
        self.assertEqual(self.campaign.pack_payment_status, PackOrder.STATUS_COMPLETED)

    def test_failure_on_pending_order(self):
        failed = intent_event('payment_intent.payment_failed', 'pi_9', metadata={'pack_order_id': str(self.order.pk)})
        self.assertEqual(reconcile_pack_payment_event(failed), OUTCOME_APPLIED)
        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_FAILED)
        self.assertIsNone(self.order.paid_at)
        self.assertEqual(self.campaign.pack_payment_status, PackOrder.STATUS_FAILED)

    def test_success_after_failure_is_a_no_op(self):
        apply_pack_payment_status(self.order.pk, PackOrder.STATUS_FAILED)
        self.assertEqual(reconcile_pack_payment_event(checkout_completed(self.order)), OUTCOME_DUPLICATE)
        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_FAILED)

    def test_unresolvable_event_mutates_nothing(self):
        outcome = reconcile_pack_payment_event(checkout_completed(payment_intent='pi_unknown'))
        self.assertEqual(outcome, OUTCOME_UNRESOLVED)
        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_PENDING)
        self.assertEqual(self.campaign.pack_payment_status, PackOrder.STATUS_PENDING)

    def test_missing_order_id_is_unresolved(self):
        event = intent_event('payment_intent.succeeded', 'pi_1', metadata={'pack_order_id': '999999'})
        self.assertEqual(reconcile_pack_payment_event(event), OUTCOME_UNRESOLVED)

    def test_other_event_types_are_ignored(self):
        event = stripe_event('charge.refunded', {'id': 'ch_1', 'metadata': {'pack_order_id': str(self.order.pk)}})
        self.assertEqual(reconcile_pack_payment_event(event), OUTCOME_IGNORED)
        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_PENDING)

    def test_missing_campaign_link_rolls_back(self):
        Campaign.objects.filter(pk=self.campaign.pk).update(pack_order=None)

        with self.assertRaises(PackOrderSyncError):
            reconcile_pack_payment_event(checkout_completed(self.order))

        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_PENDING)
        self.assertIsNone(self.order.paid_at)
        self.assertIsNone(self.order.stripe_payment_intent_id)

    def test_redelivery_repairs_diverged_mirror(self):
        reconcile_pack_payment_event(checkout_completed(self.order))
        Campaign.objects.filter(pk=self.campaign.pk).update(pack_payment_status=PackOrder.STATUS_PENDING)

        reconcile_pack_payment_event(checkout_completed(self.order))
        self.refresh()
        self.assertEqual(self.campaign.pack_payment_status, PackOrder.STATUS_COMPLETED)

    def test_payment_intent_already_used_by_another_order_is_not_copied(self):
        _campaign, other = submit_campaign(filled_draft(), self.owner, uuid.uuid4())
        PackOrder.objects.filter(pk=other.pk).update(stripe_payment_intent_id='pi_checkout_1')

        reconcile_pack_payment_event(checkout_completed(self.order))
        self.refresh()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_COMPLETED)
        self.assertIsNone(self.order.stripe_payment_intent_id)

    def test_confirmation_email_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            reconcile_pack_payment_event(checkout_completed(self.order))

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['sarah@example.com'])
        self.assertIn('Free Starter Pack', mail.outbox[0].subject)
        self.assertIn('1 Main Street', mail.outbox[0].body)

    def test_no_email_for_duplicates_or_failures(self):
        reconcile_pack_payment_event(checkout_completed(self.order))
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            reconcile_pack_payment_event(checkout_completed(self.order))
            reconcile_pack_payment_event(intent_event('payment_intent.payment_failed', 'pi_checkout_1'))
        self.assertEqual(callbacks, [])


class PaymentIntentTests(PackOrderTestMixin, TestCase):
    @patch('payments.services.stripe.PaymentIntent.create')
    def test_creates_and_stores_intent(self, mock_create):
        mock_create.return_value = MagicMock(id='pi_new', client_secret='pi_new_secret')

        intent = get_or_create_pack_payment_intent(self.order)

        self.assertEqual(intent.client_secret, 'pi_new_secret')
        kwargs = mock_create.call_args.kwargs
        self.assertEqual(kwargs['amount'], 1000)
        self.assertEqual(kwargs['currency'], 'eur')
        self.assertEqual(kwargs['metadata']['pack_order_id'], str(self.order.pk))
        self.order.refresh_from_db()
        self.assertEqual(self.order.stripe_payment_intent_id, 'pi_new')

    @patch('payments.services.stripe.PaymentIntent.retrieve')
    @patch('payments.services.stripe.PaymentIntent.create')
    def test_reuses_stored_intent(self, mock_create, mock_retrieve):
        PackOrder.objects.filter(pk=self.order.pk).update(stripe_payment_intent_id='pi_existing')
        self.order.refresh_from_db()
        mock_retrieve.return_value = MagicMock(id='pi_existing', client_secret='pi_existing_secret')

        intent = get_or_create_pack_payment_intent(self.order)

        self.assertEqual(intent.id, 'pi_existing')
        mock_retrieve.assert_called_once_with('pi_existing')
        mock_create.assert_not_called()


class PaymentLinkTests(PackOrderTestMixin, TestCase):
    def checkout_session(self):
        return MagicMock(id='cs_link_1', url='https://checkout.stripe.com/c/pay/cs_link_1')

    @patch('payments.services.stripe.checkout.Session.create')
    def test_link_carries_pack_order_metadata(self, mock_create):
        mock_create.return_value = self.checkout_session()

        url = create_pack_checkout_link(self.order)

        self.assertEqual(url, 'https://checkout.stripe.com/c/pay/cs_link_1')
        kwargs = mock_create.call_args.kwargs
        self.assertEqual(kwargs['metadata']['pack_order_id'], str(self.order.pk))
        self.assertEqual(kwargs['line_items'][0]['price_data']['unit_amount'], 1000)
        self.order.refresh_from_db()
        self.assertEqual(self.order.stripe_checkout_session_id, 'cs_link_1')
        self.assertIsNone(self.order.payment_link_sent_at)
        self.assertEqual(len(mail.outbox), 0)

    @patch('payments.services.stripe.checkout.Session.create')
    def test_link_emailed_to_organiser(self, mock_create):
        mock_create.return_value = self.checkout_session()

        self.assertTrue(email_pack_checkout_link(self.order))

        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('https://checkout.stripe.com/c/pay/cs_link_1', mail.outbox[0].body)
        self.order.refresh_from_db()
        self.assertIsNotNone(self.order.payment_link_sent_at)

    @patch('payments.services.stripe.checkout.Session.create')
    def test_reminder_task_sends_once_for_stale_orders(self, mock_create):
        mock_create.return_value = self.checkout_session()
        PackOrder.objects.filter(pk=self.order.pk).update(created_at=timezone.now() - timedelta(hours=30))
        _campaign, fresh_order = submit_campaign(filled_draft(), self.owner, uuid.uuid4())

        self.assertEqual(send_pack_payment_reminders_task(24), "Sent 1 pack payment reminders.")
        self.assertEqual(mock_create.call_count, 1)
        self.assertEqual(send_pack_payment_reminders_task(24), "Sent 0 pack payment reminders.")

        fresh_order.refresh_from_db()
        self.assertIsNone(fresh_order.payment_link_sent_at)

    @patch('core.email_utils.send_transactional_email_task.delay', side_effect=ConnectionError('broker down'))
    @patch('payments.services.stripe.checkout.Session.create')
    def test_unqueued_reminder_is_retried_next_run(self, mock_create, _mock_delay):
        mock_create.return_value = self.checkout_session()
        PackOrder.objects.filter(pk=self.order.pk).update(created_at=timezone.now() - timedelta(hours=30))

        self.assertEqual(send_pack_payment_reminders_task(24), "Sent 0 pack payment reminders.")
        self.order.refresh_from_db()
        self.assertIsNone(self.order.payment_link_sent_at)

        self.assertEqual(send_pack_payment_reminders_task(24), "Sent 0 pack payment reminders.")
        self.assertEqual(mock_create.call_count, 2)

    @patch('payments.services.stripe.checkout.Session.create')
    def test_reminder_task_skips_paid_orders(self, mock_create):
        PackOrder.objects.filter(pk=self.order.pk).update(created_at=timezone.now() - timedelta(hours=30))
        apply_pack_payment_status(self.order.pk, PackOrder.STATUS_COMPLETED)

        self.assertEqual(send_pack_payment_reminders_task(24), "Sent 0 pack payment reminders.")
        mock_create.assert_not_called()
