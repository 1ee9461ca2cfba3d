import json
import uuid
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import stripe
from django.db import DatabaseError, connections
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse

from accounts.models import User
from campaigns.models import Campaign
from campaigns.services import submit_campaign
from campaigns.test_services import filled_draft

from .models import PackOrder
from .services import OUTCOME_APPLIED, reconcile_pack_payment_event
from .test_services import checkout_completed, intent_event, stripe_signature


class StripeWebhookViewTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.owner = User.objects.create_user(email='sarah@example.com', password='password123')

    def setUp(self):
        self.campaign, self.order = submit_campaign(filled_draft(), self.owner, uuid.uuid4())
        self.url = reverse('payments:webhook')

    def deliver(self, event, signature=True):
        payload = event if isinstance(event, str) else json.dumps(event)
        headers = {}
        if signature is True:
            headers['HTTP_STRIPE_SIGNATURE'] = stripe_signature(payload)
        elif signature:
            headers['HTTP_STRIPE_SIGNATURE'] = signature
        return self.client.post(self.url, data=payload, content_type='application/json', **headers)

    def test_success_event_completes_order(self):
        response = self.deliver(checkout_completed(self.order))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'received': True, 'outcome': 'applied'})
        self.order.refresh_from_db()
        self.campaign.refresh_from_db()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_COMPLETED)
        self.assertIsNotNone(self.order.paid_at)
        self.assertEqual(self.campaign.pack_payment_status, PackOrder.STATUS_COMPLETED)

    def test_redelivery_is_acknowledged_as_duplicate(self):
        event = checkout_completed(self.order)
        self.deliver(event)
        self.order.refresh_from_db()
        paid_at = self.order.paid_at

        response = self.deliver(event)
        self.assertEqual(response.json()['outcome'], 'duplicate')
        self.order.refresh_from_db()
        self.assertEqual(self.order.paid_at, paid_at)

    def test_invalid_signature_touches_nothing(self):
        response = self.deliver(checkout_completed(self.order), signature='t=1,v1=deadbeef')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.content, b"Invalid signature")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_PENDING)

    def test_missing_signature_is_rejected(self):
        response = self.deliver(checkout_completed(self.order), signature=None)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.content, b"Invalid signature")

    def test_malformed_payload(self):
        response = self.deliver('{"type": ')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.content, b"Invalid payload")

    def test_unrelated_event_is_acknowledged(self):
        response = self.deliver(intent_event('payment_intent.created', 'pi_1'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['outcome'], 'ignored')

    def test_unresolvable_event_is_acknowledged(self):
        response = self.deliver(intent_event('payment_intent.succeeded', 'pi_nobody'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['outcome'], 'unresolved')
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_PENDING)

    def test_sync_failure_returns_500_and_rolls_back(self):
        Campaign.objects.filter(pk=self.campaign.pk).update(pack_order=None)

        response = self.deliver(checkout_completed(self.order))

        self.assertEqual(response.status_code, 500)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_PENDING)

    def test_database_error_returns_500(self):
        with patch('payments.views.reconcile_pack_payment_event', side_effect=DatabaseError("connection lost")):
            response = self.deliver(checkout_completed(self.order))
        self.assertEqual(response.status_code, 500)

    @override_settings(STRIPE_WEBHOOK_SECRET=None, STRIPE_WEBHOOK_ALLOW_UNVERIFIED=False)
    def test_unconfigured_secret_refuses_events(self):
        response = self.deliver(checkout_completed(self.order), signature=None)
        self.assertEqual(response.status_code, 500)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PackOrder.STATUS_PENDING)

    @override_settings(STRIPE_WEBHOOK_SECRET=None, STRIPE_WEBHOOK_ALLOW_UNVERIFIED=True)
    def test_unverified_mode_processes_events(self):
        response = self.deliver(checkout_completed(self.order), signature=None)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['outcome'], 'applied')

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)


class PackPaymentIntentViewTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.owner = User.objects.create_user(email='sarah@example.com', password='password123')
        cls.stranger = User.objects.create_user(email='other@example.com', password='password123')

    def setUp(self):
        self.campaign, self.order = submit_campaign(filled_draft(), self.owner, uuid.uuid4())
        self.url = reverse('payments:pack_payment_intent', args=[self.order.pk])

    def test_requires_login(self):
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, 302)

    def test_other_users_order_is_not_found(self):
        self.client.force_login(self.stranger)
        self.assertEqual(self.client.post(self.url).status_code, 404)

    @patch('payments.services.stripe.PaymentIntent.create')
    def test_returns_client_secret(self, mock_create):
        mock_create.return_value = MagicMock(id='pi_new', client_secret='pi_new_secret')
        self.client.force_login(self.owner)

        response = self.client.post(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {
            'clientSecret': 'pi_new_secret', 'paymentIntentId': 'pi_new', 'amount': 1000,
        })

    def test_processed_order_is_refused(self):
        PackOrder.objects.filter(pk=self.order.pk).update(payment_status=PackOrder.STATUS_COMPLETED)
        self.client.force_login(self.owner)
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, 409)

    @patch('payments.services.stripe.PaymentIntent.create', side_effect=stripe.APIConnectionError("offline"))
    def test_stripe_errors_are_reported(self, _mock_create):
        self.client.force_login(self.owner)
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, 502)
        self.assertIn('error', response.json())


class ReconcileConcurrencyTest(TransactionTestCase):
    # TransactionTestCase so the worker threads see committed rows.

    def setUp(self):
        owner = User.objects.create_user(email='sarah@example.com', password='password123')
        self.campaign, self.order = submit_campaign(filled_draft(), owner, uuid.uuid4())

    def deliver(self, event):
        """Worker: one webhook delivery, answered like Stripe would see it."""
        try:
            return reconcile_pack_payment_event(event)
        except DatabaseError:
            return "RETRY"
        finally:
            connections.close_all()

    def test_success_and_failure_race_settles_on_one_terminal_state(self):
        success = checkout_completed(self.order)
        failure = intent_event(
            'payment_intent.payment_failed', 'pi_race',
            metadata={'pack_order_id': str(self.order.pk)},
        )
        events = [success, failure, success, failure, success]

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = list(executor.map(self.deliver, events))

        # Stripe redelivers anything that was not acknowledged.
        for event, result in zip(events, list(results)):
            if result == "RETRY":
                results.append(reconcile_pack_payment_event(event))

        self.assertEqual(results.count(OUTCOME_APPLIED), 1, f"Exactly one transition expected. Results: {results}")

        self.order.refresh_from_db()
        self.campaign.refresh_from_db()
        self.assertIn(self.order.payment_status, (PackOrder.STATUS_COMPLETED, PackOrder.STATUS_FAILED))
        self.assertEqual(self.campaign.pack_payment_status, self.order.payment_status)
        if self.order.payment_status == PackOrder.STATUS_COMPLETED:
            self.assertIsNotNone(self.order.paid_at)
        else:
            self.assertIsNone(self.order.paid_at)
