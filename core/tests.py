import uuid

from django.conf import settings
from django.contrib.sites.models import Site
from django.core import mail
from django.test import TestCase
from django.urls import reverse

from accounts.models import User
from campaigns.services import submit_campaign
from campaigns.test_services import filled_draft

from .email_utils import send_transactional_email
from .tasks import send_transactional_email_task


class TransactionalEmailTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.owner = User.objects.create_user(email='sarah@example.com', password='password123')

    def setUp(self):
        self.campaign, self.order = submit_campaign(filled_draft(), self.owner, uuid.uuid4())

    def test_queue_sends_multipart_email(self):
        queued = send_transactional_email(
            'sarah@example.com', 'Payment link', 'emails/pack_payment_link.html',
            {'campaign_id': self.campaign.pk, 'pack_order_id': self.order.pk, 'payment_link': 'https://pay.example/1'},
        )

        self.assertTrue(queued)
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['sarah@example.com'])
        self.assertEqual(message.from_email, settings.DEFAULT_FROM_EMAIL)
        self.assertIn('Free Starter Pack', message.body)
        self.assertIn('https://pay.example/1', message.body)
        self.assertEqual(message.alternatives[0][1], 'text/html')

    def test_missing_objects_are_skipped(self):
        send_transactional_email_task(
            'sarah@example.com', 'Payment link', 'emails/pack_payment_link.html',
            {'campaign_id': 999999, 'payment_link': 'https://pay.example/1'},
        )
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('https://pay.example/1', mail.outbox[0].body)


class HomeViewTests(TestCase):
    def test_lists_only_approved_campaigns(self):
        owner = User.objects.create_user(email='owner@example.com', password='password123')
        hidden, _ = submit_campaign(filled_draft(), owner, uuid.uuid4())
        shown, _ = submit_campaign(filled_draft(), owner, uuid.uuid4())
        shown.approve()

        response = self.client.get(reverse('core:home'))

        self.assertEqual(list(response.context['campaigns']), [shown])
        self.assertNotIn(hidden, response.context['campaigns'])


class SiteDomainMigrationTests(TestCase):
    def test_default_site_uses_configured_domain(self):
        site = Site.objects.get(pk=settings.SITE_ID)
        self.assertEqual(site.domain, settings.SITE_DOMAIN)
        self.assertEqual(site.name, settings.SITE_NAME)
