"""
Step sequencing for the campaign creation wizard.

The layout (which logical step sits in which numbered slot) is chosen from
whether the user was signed in when the wizard was opened. Signing in part
way through does not switch layouts: the Account Setup slot simply stops
being reachable and Basic Information becomes the first navigable slot.
"""
import logging
import uuid

from .constants import (
    STEP_AUTH, STEP_BASIC_INFO, STEP_EVENT_DETAILS, STEP_FUNDRAISING_GOAL,
    STEP_PACK_SELECTION, STEP_PAYMENT, STEP_SOCIAL_MEDIA, STEP_TITLES,
)
from .drafts import WizardDraft
from .forms import STEP_FORMS

logger = logging.getLogger(__name__)

WIZARD_SESSION_KEY = 'campaign_wizard'

# (authenticated at mount, slot) -> logical step
STEP_TABLE = {
    (True, 1): STEP_BASIC_INFO,
    (True, 2): STEP_EVENT_DETAILS,
    (True, 3): STEP_FUNDRAISING_GOAL,
    (True, 4): STEP_SOCIAL_MEDIA,
    (True, 5): STEP_PACK_SELECTION,
    (True, 6): STEP_PAYMENT,

    (False, 1): STEP_AUTH,
    (False, 2): STEP_BASIC_INFO,
    (False, 3): STEP_EVENT_DETAILS,
    (False, 4): STEP_FUNDRAISING_GOAL,
    (False, 5): STEP_SOCIAL_MEDIA,
    (False, 6): STEP_PACK_SELECTION,
    (False, 7): STEP_PAYMENT,
}


def total_steps(authenticated):
    return sum(1 for layout, _slot in STEP_TABLE if layout == authenticated)


def step_for_slot(authenticated, slot):
    return STEP_TABLE.get((authenticated, slot))


def slot_for_step(authenticated, step):
    for (layout, slot), candidate in STEP_TABLE.items():
        if layout == authenticated and candidate == step:
            return slot
    return None


# --- ERRORS ---

class WizardError(Exception):
    """A transition the wizard cannot make from its current state."""


class StepIncompleteError(WizardError):
    def __init__(self, step, errors=None):
        self.step = step
        self.errors = errors or {}
        super().__init__(f"Step '{step}' is not complete.")


class SubmissionInProgressError(WizardError):
    pass


class CampaignWizard:
    def __init__(self, started_authenticated, authenticated=None, current_step=1, draft=None,
                 submission_token=None, campaign_id=None, pack_order_id=None, error=''):
        self.started_authenticated = started_authenticated
        self.authenticated = started_authenticated if authenticated is None else authenticated
        self.current_step = current_step
        self.draft = draft or WizardDraft()
        self.submission_token = submission_token or str(uuid.uuid4())
        self.campaign_id = campaign_id
        self.pack_order_id = pack_order_id
        self.error = error
        self.submitting = False

    @classmethod
    def start(cls, user=None):
        """Opens a fresh wizard for the given (possibly anonymous) user."""
        authenticated = bool(user is not None and user.is_authenticated)
        wizard = cls(started_authenticated=authenticated)
        if authenticated:
            wizard.prefill_from_user(user)
        return wizard

    # --- SESSION ---

    @classmethod
    def from_session(cls, session):
        state = session.get(WIZARD_SESSION_KEY)
        if not state:
            return None
        return cls(
            started_authenticated=state['started_authenticated'],
            authenticated=state['authenticated'],
            current_step=state['current_step'],
            draft=WizardDraft.from_dict(state.get('draft')),
            submission_token=state.get('submission_token'),
            campaign_id=state.get('campaign_id'),
            pack_order_id=state.get('pack_order_id'),
            error=state.get('error', ''),
        )

    def save(self, session):
        session[WIZARD_SESSION_KEY] = {
            'started_authenticated': self.started_authenticated,
            'authenticated': self.authenticated,
            'current_step': self.current_step,
            'draft': self.draft.to_dict(),
            'submission_token': self.submission_token,
            'campaign_id': self.campaign_id,
            'pack_order_id': self.pack_order_id,
            'error': self.error,
        }

    @staticmethod
    def discard(session):
        session.pop(WIZARD_SESSION_KEY, None)

    # --- POSITION ---

    @property
    def total_steps(self):
        return total_steps(self.started_authenticated)

    @property
    def step(self):
        return step_for_slot(self.started_authenticated, self.current_step)

    @property
    def title(self):
        return STEP_TITLES[self.step]

    @property
    def first_slot(self):
        """First slot the user can navigate to. The auth slot drops out once signed in."""
        if self.authenticated and not self.started_authenticated:
            return slot_for_step(self.started_authenticated, STEP_BASIC_INFO)
        return 1

    @property
    def submission_slot(self):
        return self.total_steps - 1

    @property
    def is_first_slot(self):
        return self.current_step == self.first_slot

    @property
    def is_submission_slot(self):
        return self.current_step == self.submission_slot

    @property
    def is_final_slot(self):
        return self.current_step == self.total_steps

    @property
    def progress(self):
        return round(self.current_step / self.total_steps * 100)

    # --- VALIDATION ---

    def step_form(self, step=None):
        """The step's form bound to the current draft values, or None for Auth/Payment."""
        step = step or self.step
        form_class = STEP_FORMS.get(step)
        if form_class is None:
            return None
        return form_class(data=self.draft.step_data(step))

    def can_proceed(self):
        form = self.step_form()
        if form is None:
            # Account Setup advances through complete_auth and Payment has no Next.
            return False
        return form.is_valid()

    def update_field(self, name, value):
        """Stores one field of the current step and re-evaluates the gate."""
        self.draft.set_field(self.step, name, value)
        return self.can_proceed()

    def update_step(self, data):
        self.draft.update(self.step, data)
        return self.can_proceed()

    # --- TRANSITIONS ---

    def _require_complete(self):
        form = self.step_form()
        if form is None or not form.is_valid():
            raise StepIncompleteError(self.step, form.errors if form is not None else None)

    def next(self):
        if self.submitting:
            raise SubmissionInProgressError("Your campaign is already being created.")
        if self.current_step >= self.submission_slot:
            raise WizardError("Use submit to create the campaign from this step.")
        self._require_complete()
        self.current_step += 1
        self.error = ''
        return self.current_step

    def back(self):
        if self.submitting:
            raise SubmissionInProgressError("Your campaign is already being created.")
        if self.is_first_slot:
            raise WizardError("There is no earlier step. Cancel to leave the wizard.")
        self.current_step -= 1
        self.error = ''
        return self.current_step

    def prefill_from_user(self, user):
        campaign, shipping = self.draft.campaign, self.draft.shipping
        full_name = user.get_full_name()
        campaign.organizer = campaign.organizer or full_name
        campaign.email = campaign.email or user.email
        campaign.county = campaign.county or user.county
        campaign.eircode = campaign.eircode or user.eircode
        shipping.name = shipping.name or full_name
        shipping.county = shipping.county or user.county
        shipping.eircode = shipping.eircode or user.eircode

    def complete_auth(self, user):
        """
        Called once the account step has signed the user in. Copies the
        account details into the campaign and shipping drafts and moves to
        Basic Information without switching to the signed-in layout.
        """
        if self.authenticated:
            raise WizardError("You are already signed in.")
        if self.step != STEP_AUTH:
            raise WizardError("Account setup is not the current step.")

        auth = self.draft.auth
        auth.email = user.email
        auth.full_name = auth.full_name or user.get_full_name()
        auth.county = auth.county or user.county
        auth.eircode = (auth.eircode or user.eircode or '').upper()

        campaign, shipping = self.draft.campaign, self.draft.shipping
        campaign.organizer = auth.full_name
        campaign.email = auth.email
        campaign.county = auth.county
        campaign.eircode = auth.eircode
        shipping.name = auth.full_name
        shipping.county = auth.county
        shipping.eircode = auth.eircode

        self.authenticated = True
        self.current_step = slot_for_step(self.started_authenticated, STEP_BASIC_INFO)
        self.error = ''
        logger.info(f"Wizard account step completed for {user.email}; moving to slot {self.current_step}.")

    def submit(self, submitter):
        """
        Creates the campaign and pack order via `submitter(wizard)`, which
        must return `(campaign, pack_order)`. On failure the wizard stays on
        the submission slot with the draft untouched and the error stored.
        """
        if self.submitting:
            raise SubmissionInProgressError("Your campaign is already being created.")
        if not self.is_submission_slot:
            raise WizardError("The campaign can only be created from the pack selection step.")
        if not self.authenticated:
            raise WizardError("You need to be signed in to create a campaign.")
        self._require_complete()

        self.submitting = True
        self.error = ''
        try:
            campaign, pack_order = submitter(self)
        except Exception as e:
            self.error = str(e)
            raise
        finally:
            self.submitting = False

        self.campaign_id = campaign.pk
        self.pack_order_id = pack_order.pk
        self.current_step = self.total_steps
        return campaign, pack_order
