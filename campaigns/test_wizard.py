from datetime import timedelta
from types import SimpleNamespace

from django.test import SimpleTestCase
from django.utils import timezone

from accounts.models import User

from .constants import (
    PACK_LARGE, PACK_MEDIUM, STEP_AUTH, STEP_BASIC_INFO, STEP_EVENT_DETAILS,
    STEP_FUNDRAISING_GOAL, STEP_PACK_SELECTION, STEP_PAYMENT, STEP_SOCIAL_MEDIA,
)
from .wizard import (
    WIZARD_SESSION_KEY, CampaignWizard, StepIncompleteError, SubmissionInProgressError,
    WizardError, slot_for_step, step_for_slot, total_steps,
)


def future_date(days=30):
    return (timezone.localdate() + timedelta(days=days)).isoformat()


def valid_step_data():
    return {
        STEP_BASIC_INFO: {
            'title': "Sarah's Coffee Morning",
            'organizer': 'Sarah Byrne',
            'email': 'sarah@example.com',
            'story': 'Coffee and cake for YSPI.',
        },
        STEP_EVENT_DETAILS: {
            'county': 'Dublin',
            'eircode': 'd02 x285',
            'location': 'St. Mary\'s Parish Hall',
            'event_date': future_date(),
            'event_time': '10:00',
        },
        STEP_FUNDRAISING_GOAL: {'goal_amount': '500'},
        STEP_SOCIAL_MEDIA: {},
        STEP_PACK_SELECTION: {
            'pack': 'free',
            'name': 'Sarah Byrne',
            'address_line_1': '1 Main Street',
            'city': 'Dublin',
            'county': 'Dublin',
            'eircode': 'd02 x285',
            'country': 'Ireland',
        },
    }


def build_draft(wizard, pack=None):
    """Fills every step of the wizard's draft with valid values."""
    data = valid_step_data()
    if pack:
        data[STEP_PACK_SELECTION]['pack'] = pack
    for step, values in data.items():
        wizard.draft.update(step, values)
    return wizard.draft


def signed_in_user(**kwargs):
    defaults = {
        'username': 'niamh@example.com', 'email': 'niamh@example.com',
        'full_name': 'Niamh Kelly', 'county': 'Galway', 'eircode': 'H91 E2K3',
    }
    defaults.update(kwargs)
    return User(**defaults)


class StepTableTests(SimpleTestCase):
    def test_total_steps_depends_on_authentication(self):
        self.assertEqual(total_steps(True), 6)
        self.assertEqual(total_steps(False), 7)

    def test_payment_is_the_last_slot_in_both_layouts(self):
        self.assertEqual(step_for_slot(True, 6), STEP_PAYMENT)
        self.assertEqual(step_for_slot(False, 7), STEP_PAYMENT)

    def test_account_setup_only_in_anonymous_layout(self):
        self.assertEqual(step_for_slot(False, 1), STEP_AUTH)
        self.assertEqual(step_for_slot(True, 1), STEP_BASIC_INFO)
        self.assertIsNone(slot_for_step(True, STEP_AUTH))

    def test_anonymous_layout_shifts_campaign_steps_by_one(self):
        for step in (STEP_BASIC_INFO, STEP_EVENT_DETAILS, STEP_FUNDRAISING_GOAL,
                     STEP_SOCIAL_MEDIA, STEP_PACK_SELECTION, STEP_PAYMENT):
            self.assertEqual(slot_for_step(False, step), slot_for_step(True, step) + 1)


class WizardMountTests(SimpleTestCase):
    def test_anonymous_mount_starts_on_account_setup(self):
        wizard = CampaignWizard.start(None)
        self.assertEqual(wizard.current_step, 1)
        self.assertEqual(wizard.step, STEP_AUTH)
        self.assertEqual(wizard.title, 'Account Setup')
        self.assertEqual(wizard.total_steps, 7)
        self.assertFalse(wizard.can_proceed())

    def test_account_setup_cannot_be_skipped_with_next(self):
        wizard = CampaignWizard.start(None)
        with self.assertRaises(StepIncompleteError):
            wizard.next()
        self.assertEqual(wizard.current_step, 1)

    def test_signed_in_mount_starts_on_basic_info_and_prefills(self):
        wizard = CampaignWizard.start(signed_in_user())
        self.assertEqual(wizard.step, STEP_BASIC_INFO)
        self.assertEqual(wizard.total_steps, 6)
        self.assertEqual(wizard.draft.campaign.organizer, 'Niamh Kelly')
        self.assertEqual(wizard.draft.campaign.email, 'niamh@example.com')
        self.assertEqual(wizard.draft.shipping.county, 'Galway')
        self.assertEqual(wizard.draft.shipping.eircode, 'H91 E2K3')


class CompleteAuthTests(SimpleTestCase):
    def setUp(self):
        self.wizard = CampaignWizard.start(None)
        self.wizard.draft.auth.full_name = 'Sarah Byrne'
        self.wizard.draft.auth.county = 'Cork'
        self.wizard.draft.auth.eircode = 't12 ab34'
        self.user = signed_in_user(
            username='sarah@example.com', email='sarah@example.com',
            full_name='Sarah Byrne', county='Cork', eircode='T12 AB34',
        )

    def test_lands_on_basic_info_keeping_the_anonymous_numbering(self):
        self.wizard.complete_auth(self.user)
        self.assertTrue(self.wizard.authenticated)
        self.assertEqual(self.wizard.step, STEP_BASIC_INFO)
        self.assertEqual(self.wizard.current_step, 2)
        self.assertEqual(self.wizard.total_steps, 7)

    def test_prefills_campaign_and_shipping_from_account(self):
        self.wizard.complete_auth(self.user)
        campaign, shipping = self.wizard.draft.campaign, self.wizard.draft.shipping
        self.assertEqual(campaign.organizer, 'Sarah Byrne')
        self.assertEqual(campaign.email, 'sarah@example.com')
        self.assertEqual(campaign.county, 'Cork')
        self.assertEqual(campaign.eircode, 'T12 AB34')
        self.assertEqual(shipping.name, 'Sarah Byrne')
        self.assertEqual(shipping.county, 'Cork')

    def test_basic_info_becomes_first_slot(self):
        self.wizard.complete_auth(self.user)
        self.assertTrue(self.wizard.is_first_slot)
        with self.assertRaises(WizardError):
            self.wizard.back()
        self.assertEqual(self.wizard.step, STEP_BASIC_INFO)

    def test_cannot_complete_auth_twice(self):
        self.wizard.complete_auth(self.user)
        with self.assertRaises(WizardError):
            self.wizard.complete_auth(self.user)


class CanProceedTests(SimpleTestCase):
    def setUp(self):
        self.wizard = CampaignWizard.start(signed_in_user())

    def go_to(self, step):
        self.wizard.current_step = slot_for_step(True, step)

    def test_basic_info_requires_title_and_story(self):
        self.wizard.draft.update(STEP_BASIC_INFO, {'title': '', 'story': ''})
        self.assertFalse(self.wizard.can_proceed())
        self.assertFalse(self.wizard.update_field('title', "Sarah's Coffee Morning"))
        self.assertTrue(self.wizard.update_field('story', 'Coffee for a good cause.'))

    def test_basic_info_rejects_invalid_email(self):
        build_draft(self.wizard)
        self.assertFalse(self.wizard.update_field('email', 'not-an-email'))

    def test_goal_amount_bounds(self):
        self.go_to(STEP_FUNDRAISING_GOAL)
        self.assertFalse(self.wizard.update_field('goal_amount', '50'))
        self.assertTrue(self.wizard.update_field('goal_amount', '100'))
        self.assertTrue(self.wizard.update_field('goal_amount', '50000'))
        self.assertFalse(self.wizard.update_field('goal_amount', '50001'))
        self.assertFalse(self.wizard.update_field('goal_amount', 'lots'))

    def test_event_date_cannot_be_in_the_past(self):
        build_draft(self.wizard)
        self.go_to(STEP_EVENT_DETAILS)
        self.assertTrue(self.wizard.can_proceed())
        yesterday = (timezone.localdate() - timedelta(days=1)).isoformat()
        self.assertFalse(self.wizard.update_field('event_date', yesterday))

    def test_event_county_must_be_an_irish_county(self):
        build_draft(self.wizard)
        self.go_to(STEP_EVENT_DETAILS)
        self.assertFalse(self.wizard.update_field('county', 'Yorkshire'))

    def test_social_media_is_optional_but_urls_must_be_valid(self):
        self.go_to(STEP_SOCIAL_MEDIA)
        self.assertTrue(self.wizard.can_proceed())
        self.assertFalse(self.wizard.update_field('facebook', 'not a url'))
        self.assertTrue(self.wizard.update_field('facebook', 'https://facebook.com/yspi'))

    def test_pack_selection_requires_full_shipping_address(self):
        build_draft(self.wizard)
        self.go_to(STEP_PACK_SELECTION)
        self.assertTrue(self.wizard.can_proceed())
        self.assertFalse(self.wizard.update_field('address_line_1', ''))

    def test_shirt_sizes_only_checked_for_included_shirts(self):
        build_draft(self.wizard)
        self.go_to(STEP_PACK_SELECTION)
        self.wizard.update_field('shirt_3', '')
        self.assertTrue(self.wizard.update_field('pack', PACK_MEDIUM))
        self.assertFalse(self.wizard.update_field('pack', PACK_LARGE))
        self.assertFalse(self.wizard.update_field('shirt_3', 'XXXL'))
        self.assertTrue(self.wizard.update_field('shirt_3', 'XL'))

    def test_payment_never_proceeds(self):
        build_draft(self.wizard)
        self.go_to(STEP_PAYMENT)
        self.assertFalse(self.wizard.can_proceed())

    def test_eircodes_are_uppercased_on_entry(self):
        self.go_to(STEP_EVENT_DETAILS)
        self.wizard.update_field('eircode', 'd02 x285')
        self.assertEqual(self.wizard.draft.campaign.eircode, 'D02 X285')

    def test_fields_of_other_steps_are_ignored(self):
        self.wizard.update_field('goal_amount', '900')
        self.assertEqual(self.wizard.draft.campaign.goal_amount, '')


class NavigationTests(SimpleTestCase):
    def setUp(self):
        self.wizard = CampaignWizard.start(signed_in_user())
        build_draft(self.wizard)

    def test_next_walks_to_the_submission_slot(self):
        while not self.wizard.is_submission_slot:
            self.wizard.next()
        self.assertEqual(self.wizard.step, STEP_PACK_SELECTION)
        with self.assertRaises(WizardError):
            self.wizard.next()

    def test_next_refused_while_incomplete(self):
        self.wizard.update_field('title', '')
        with self.assertRaises(StepIncompleteError) as ctx:
            self.wizard.next()
        self.assertIn('title', ctx.exception.errors)
        self.assertEqual(self.wizard.current_step, 1)

    def test_back_returns_to_previous_slot(self):
        self.wizard.next()
        self.wizard.back()
        self.assertEqual(self.wizard.step, STEP_BASIC_INFO)

    def test_back_refused_on_first_slot(self):
        with self.assertRaises(WizardError):
            self.wizard.back()


class SubmitTests(SimpleTestCase):
    def setUp(self):
        self.wizard = CampaignWizard.start(signed_in_user())
        build_draft(self.wizard)
        self.wizard.current_step = self.wizard.submission_slot

    def test_successful_submission_moves_to_payment(self):
        calls = []

        def submitter(wizard):
            calls.append(wizard.submission_token)
            return SimpleNamespace(pk=11), SimpleNamespace(pk=22)

        self.wizard.submit(submitter)
        self.assertEqual(calls, [self.wizard.submission_token])
        self.assertEqual(self.wizard.step, STEP_PAYMENT)
        self.assertEqual(self.wizard.current_step, 6)
        self.assertEqual((self.wizard.campaign_id, self.wizard.pack_order_id), (11, 22))
        self.assertFalse(self.wizard.submitting)

    def test_failed_submission_keeps_step_and_draft(self):
        before = self.wizard.draft.to_dict()

        def submitter(wizard):
            raise RuntimeError("Network unavailable")

        with self.assertRaises(RuntimeError):
            self.wizard.submit(submitter)
        self.assertEqual(self.wizard.step, STEP_PACK_SELECTION)
        self.assertEqual(self.wizard.error, "Network unavailable")
        self.assertEqual(self.wizard.draft.to_dict(), before)
        self.assertFalse(self.wizard.submitting)

    def test_concurrent_submission_is_refused(self):
        self.wizard.submitting = True
        with self.assertRaises(SubmissionInProgressError):
            self.wizard.submit(lambda w: (SimpleNamespace(pk=1), SimpleNamespace(pk=2)))
        with self.assertRaises(SubmissionInProgressError):
            self.wizard.back()

    def test_submit_requires_complete_pack_step(self):
        self.wizard.update_field('city', '')
        with self.assertRaises(StepIncompleteError):
            self.wizard.submit(lambda w: (SimpleNamespace(pk=1), SimpleNamespace(pk=2)))
        self.assertEqual(self.wizard.step, STEP_PACK_SELECTION)

    def test_submit_only_from_submission_slot(self):
        self.wizard.current_step = 1
        with self.assertRaises(WizardError):
            self.wizard.submit(lambda w: (SimpleNamespace(pk=1), SimpleNamespace(pk=2)))


class UnauthenticatedWalkthroughTests(SimpleTestCase):
    def test_full_run_numbers_slots_one_to_seven(self):
        wizard = CampaignWizard.start(None)
        seen = [(wizard.current_step, wizard.step)]

        wizard.complete_auth(signed_in_user(username='sarah@example.com', email='sarah@example.com'))
        build_draft(wizard)
        seen.append((wizard.current_step, wizard.step))
        while not wizard.is_submission_slot:
            wizard.next()
            seen.append((wizard.current_step, wizard.step))
        wizard.submit(lambda w: (SimpleNamespace(pk=1), SimpleNamespace(pk=2)))
        seen.append((wizard.current_step, wizard.step))

        self.assertEqual(seen, [
            (1, STEP_AUTH),
            (2, STEP_BASIC_INFO),
            (3, STEP_EVENT_DETAILS),
            (4, STEP_FUNDRAISING_GOAL),
            (5, STEP_SOCIAL_MEDIA),
            (6, STEP_PACK_SELECTION),
            (7, STEP_PAYMENT),
        ])
        self.assertEqual(wizard.total_steps, 7)


class SessionTests(SimpleTestCase):
    def test_round_trip_through_session(self):
        session = {}
        wizard = CampaignWizard.start(signed_in_user())
        build_draft(wizard, pack=PACK_MEDIUM)
        wizard.next()
        wizard.save(session)

        restored = CampaignWizard.from_session(session)
        self.assertEqual(restored.current_step, 2)
        self.assertEqual(restored.submission_token, wizard.submission_token)
        self.assertEqual(restored.draft.pack.pack, PACK_MEDIUM)
        self.assertEqual(restored.draft.pack.sizes(), ['M', 'M'])

    def test_passwords_are_never_stored(self):
        session = {}
        wizard = CampaignWizard.start(None)
        wizard.update_field('password', 'C0ffee-Morning-2024!')
        wizard.save(session)
        self.assertNotIn('C0ffee-Morning-2024!', str(session[WIZARD_SESSION_KEY]))

    def test_discard_removes_wizard(self):
        session = {}
        CampaignWizard.start(None).save(session)
        CampaignWizard.discard(session)
        self.assertIsNone(CampaignWizard.from_session(session))
