import uuid
from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse

from accounts.models import User
from payments.models import PackOrder

from .constants import STEP_PACK_SELECTION
from .models import Campaign
from .services import SubmissionError, submit_campaign
from .test_services import filled_draft
from .test_wizard import valid_step_data
from .wizard import WIZARD_SESSION_KEY

HTMX = {'HTTP_HX_REQUEST': 'true'}
PASSWORD = 'C0ffee-Morning-2024!'


class WizardViewTestMixin:
    def wizard_state(self):
        return self.client.session[WIZARD_SESSION_KEY]

    def post(self, name, data=None, **extra):
        return self.client.post(reverse(f'campaigns:{name}'), data or {}, **extra)


class AnonymousWizardTests(WizardViewTestMixin, TestCase):
    def setUp(self):
        self.client.get(reverse('campaigns:create_campaign'))

    def signup_data(self, **overrides):
        data = {
            'mode': 'signup',
            'full_name': 'Sarah Byrne',
            'email': 'sarah@example.com',
            'confirm_email': 'sarah@example.com',
            'password': PASSWORD,
            'confirm_password': PASSWORD,
            'county': 'Cork',
            'eircode': 't12 ab34',
        }
        data.update(overrides)
        return data

    def test_mount_shows_account_setup_of_seven(self):
        response = self.client.get(reverse('campaigns:create_campaign'))
        self.assertContains(response, 'Step 1 of 7: Account Setup')
        self.assertEqual(self.wizard_state()['current_step'], 1)

    def test_signup_moves_to_basic_info(self):
        response = self.post('wizard_auth', self.signup_data(), **HTMX)

        self.assertContains(response, 'Step 2 of 7: Basic Information')
        user = User.objects.get(email='sarah@example.com')
        self.assertEqual(user.county, 'Cork')
        self.assertEqual(user.eircode, 'T12 AB34')
        self.assertEqual(int(self.client.session['_auth_user_id']), user.pk)

        state = self.wizard_state()
        self.assertTrue(state['authenticated'])
        self.assertFalse(state['started_authenticated'])
        self.assertEqual(state['draft']['campaign']['organizer'], 'Sarah Byrne')
        self.assertEqual(state['draft']['shipping']['eircode'], 'T12 AB34')
        self.assertNotIn(PASSWORD, str(state))

    def test_mismatched_emails_block_signup(self):
        response = self.post('wizard_auth', self.signup_data(confirm_email='other@example.com'), **HTMX)
        self.assertContains(response, 'Email addresses do not match')
        self.assertFalse(User.objects.exists())
        self.assertEqual(self.wizard_state()['current_step'], 1)

    def test_mismatched_passwords_block_signup(self):
        response = self.post('wizard_auth', self.signup_data(confirm_password='different-pass-99'), **HTMX)
        self.assertContains(response, 'Passwords do not match')
        self.assertFalse(User.objects.exists())

    def test_existing_email_shows_collaborator_error(self):
        User.objects.create_user(email='sarah@example.com', password=PASSWORD)
        response = self.post('wizard_auth', self.signup_data(), **HTMX)
        self.assertContains(response, 'An account with this email already exists')
        self.assertEqual(self.wizard_state()['current_step'], 1)

    def test_signin_moves_to_basic_info(self):
        User.objects.create_user(email='sarah@example.com', password=PASSWORD, full_name='Sarah Byrne')
        response = self.post('wizard_auth', {
            'mode': 'signin', 'email': 'sarah@example.com', 'password': PASSWORD,
        }, **HTMX)
        self.assertContains(response, 'Step 2 of 7: Basic Information')
        self.assertEqual(self.wizard_state()['draft']['campaign']['email'], 'sarah@example.com')

    def test_wrong_password_stays_on_account_setup(self):
        User.objects.create_user(email='sarah@example.com', password=PASSWORD)
        response = self.post('wizard_auth', {
            'mode': 'signin', 'email': 'sarah@example.com', 'password': 'wrong-password',
        }, **HTMX)
        self.assertContains(response, 'Invalid email or password.')
        self.assertContains(response, 'Step 1 of 7: Account Setup')

    def test_signin_elsewhere_skips_account_setup_on_reload(self):
        user = User.objects.create_user(
            email='sarah@example.com', password=PASSWORD,
            full_name='Sarah Byrne', county='Cork', eircode='t12 ab34',
        )
        self.client.force_login(user)

        response = self.client.get(reverse('campaigns:create_campaign'))

        self.assertContains(response, 'Step 2 of 7: Basic Information')
        self.assertNotContains(response, 'Account Setup')
        state = self.wizard_state()
        self.assertTrue(state['authenticated'])
        self.assertEqual(state['current_step'], 2)
        self.assertEqual(state['draft']['campaign']['email'], 'sarah@example.com')
        self.assertEqual(state['draft']['shipping']['county'], 'Cork')

    def test_back_after_auth_is_refused(self):
        self.post('wizard_auth', self.signup_data(), **HTMX)
        response = self.post('wizard_back', **HTMX)
        self.assertContains(response, 'Step 2 of 7: Basic Information')
        self.assertContains(response, 'Cancel')

    def test_full_run_reaches_payment_on_slot_seven(self):
        self.post('wizard_auth', self.signup_data(), **HTMX)
        data = valid_step_data()
        titles = ['Event Details', 'Fundraising Goal', 'Social Media', 'Pack Selection']
        steps = ['basic_info', 'event_details', 'fundraising_goal', 'social_media']
        for slot, (step, title) in enumerate(zip(steps, titles), start=3):
            response = self.post('wizard_next', data[step], **HTMX)
            self.assertContains(response, f'Step {slot} of 7: {title}')

        response = self.post('wizard_submit', data[STEP_PACK_SELECTION], **HTMX)
        self.assertContains(response, 'Step 7 of 7: Payment')

        campaign = Campaign.objects.get()
        self.assertEqual(campaign.owner.email, 'sarah@example.com')
        self.assertEqual(campaign.pack_payment_status, PackOrder.STATUS_PENDING)
        state = self.wizard_state()
        self.assertEqual(state['campaign_id'], campaign.pk)
        self.assertEqual(state['pack_order_id'], campaign.pack_order.pk)


class SignedInWizardTests(WizardViewTestMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user = User.objects.create_user(
            email='niamh@example.com', password=PASSWORD,
            full_name='Niamh Kelly', county='Galway', eircode='h91 e2k3',
        )

    def setUp(self):
        self.client.force_login(self.user)
        self.client.get(reverse('campaigns:create_campaign'))

    def advance_to_pack_selection(self):
        data = valid_step_data()
        for step in ('basic_info', 'event_details', 'fundraising_goal', 'social_media'):
            self.post('wizard_next', data[step], **HTMX)
        return data

    def test_mount_skips_account_setup(self):
        response = self.client.get(reverse('campaigns:create_campaign'))
        self.assertContains(response, 'Step 1 of 6: Basic Information')
        self.assertEqual(self.wizard_state()['draft']['campaign']['organizer'], 'Niamh Kelly')

    def test_restart_discards_draft(self):
        self.post('wizard_next', valid_step_data()['basic_info'], **HTMX)
        response = self.client.get(reverse('campaigns:create_campaign') + '?restart=1')
        self.assertContains(response, 'Step 1 of 6: Basic Information')

    def test_field_updates_toggle_next_button(self):
        response = self.post('wizard_field', {'title': '', 'story': ''}, **HTMX)
        self.assertContains(response, 'disabled')
        self.assertEqual(response['HX-Trigger'], 'wizardFieldUpdated')

        response = self.post('wizard_field', {'title': 'Coffee in Galway', 'story': 'Join us.'}, **HTMX)
        self.assertNotContains(response, 'disabled')
        self.assertEqual(self.wizard_state()['draft']['campaign']['title'], 'Coffee in Galway')

    def test_next_with_missing_fields_shows_errors(self):
        response = self.post('wizard_next', {'title': ''}, **HTMX)
        self.assertContains(response, 'Step 1 of 6: Basic Information')
        self.assertContains(response, 'This field is required.')

    def test_goal_below_minimum_blocks_next(self):
        data = valid_step_data()
        self.post('wizard_next', data['basic_info'], **HTMX)
        self.post('wizard_next', data['event_details'], **HTMX)
        response = self.post('wizard_next', {'goal_amount': '50'}, **HTMX)
        self.assertContains(response, 'Step 3 of 6: Fundraising Goal')
        self.assertEqual(self.wizard_state()['current_step'], 3)

    def test_back_keeps_draft(self):
        data = valid_step_data()
        self.post('wizard_next', data['basic_info'], **HTMX)
        response = self.post('wizard_back', **HTMX)
        self.assertContains(response, 'Step 1 of 6: Basic Information')
        self.assertContains(response, "Sarah&#x27;s Coffee Morning")

    def test_submit_creates_campaign_and_shows_payment(self):
        data = self.advance_to_pack_selection()
        response = self.post('wizard_submit', data[STEP_PACK_SELECTION], **HTMX)

        self.assertContains(response, 'Step 6 of 6: Payment')
        self.assertContains(response, 'Free Starter Pack')
        order = PackOrder.objects.get()
        self.assertContains(response, reverse('payments:pack_payment_intent', args=[order.pk]))

    def test_submit_twice_creates_one_campaign(self):
        data = self.advance_to_pack_selection()
        self.post('wizard_submit', data[STEP_PACK_SELECTION], **HTMX)
        self.post('wizard_back', **HTMX)
        self.post('wizard_submit', data[STEP_PACK_SELECTION], **HTMX)
        self.assertEqual(Campaign.objects.count(), 1)

    def test_submit_without_address_stays_on_pack_selection(self):
        data = self.advance_to_pack_selection()
        pack_data = dict(data[STEP_PACK_SELECTION], address_line_1='')
        response = self.post('wizard_submit', pack_data, **HTMX)
        self.assertContains(response, 'Step 5 of 6: Pack Selection')
        self.assertFalse(Campaign.objects.exists())

    def test_submission_error_is_shown_inline(self):
        data = self.advance_to_pack_selection()
        with patch('campaigns.views.submit_campaign', side_effect=SubmissionError("We couldn't create your campaign.")):
            response = self.post('wizard_submit', data[STEP_PACK_SELECTION], **HTMX)

        self.assertContains(response, 'Step 5 of 6: Pack Selection')
        self.assertContains(response, 'create your campaign.')
        state = self.wizard_state()
        self.assertEqual(state['current_step'], 5)
        self.assertEqual(state['draft']['shipping']['address_line_1'], '1 Main Street')

    def test_cancel_discards_and_redirects(self):
        response = self.post('wizard_cancel', **HTMX)
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response['HX-Redirect'], reverse('core:home'))
        self.assertNotIn(WIZARD_SESSION_KEY, self.client.session)

    def test_cancel_without_htmx_redirects(self):
        response = self.post('wizard_cancel')
        self.assertRedirects(response, reverse('core:home'))

    def test_full_page_without_htmx(self):
        response = self.post('wizard_next', valid_step_data()['basic_info'])
        self.assertTemplateUsed(response, 'campaigns/create_campaign.html')
        self.assertContains(response, 'Step 2 of 6: Event Details')


class CampaignListTests(TestCase):
    def test_only_public_campaigns_are_listed(self):
        owner = User.objects.create_user(email='owner@example.com', password=PASSWORD)
        approved, _ = submit_campaign(filled_draft(), owner, uuid.uuid4())
        approved.approve()
        Campaign.objects.filter(pk=approved.pk).update(title='Approved Morning')
        submit_campaign(filled_draft(), owner, uuid.uuid4())

        response = self.client.get(reverse('campaigns:campaign_list'))
        self.assertContains(response, 'Approved Morning')
        self.assertNotContains(response, "Sarah&#x27;s Coffee Morning")
