import logging

from django.db import DatabaseError, IntegrityError, transaction

from payments.services import create_pack_order

from .constants import STEP_BASIC_INFO, STEP_EVENT_DETAILS, STEP_FUNDRAISING_GOAL, STEP_SOCIAL_MEDIA
from .forms import STEP_FORMS
from .models import Campaign

logger = logging.getLogger(__name__)

CAMPAIGN_STEPS = (STEP_BASIC_INFO, STEP_EVENT_DETAILS, STEP_FUNDRAISING_GOAL, STEP_SOCIAL_MEDIA)


class SubmissionError(Exception):
    """Campaign creation failed. The message is safe to show to the user."""


def clean_campaign_draft(draft):
    """Re-validates every campaign step and returns the merged cleaned data."""
    cleaned = {}
    for step in CAMPAIGN_STEPS:
        form = STEP_FORMS[step](data=draft.step_data(step))
        if not form.is_valid():
            raise SubmissionError("Some campaign details are missing or invalid. Please go back and check them.")
        cleaned.update(form.cleaned_data)
    return cleaned


def create_campaign(draft, owner, submission_token=None):
    return Campaign.objects.create(
        owner=owner,
        submission_token=submission_token,
        **clean_campaign_draft(draft),
    )


def _existing_submission(submission_token):
    campaign = (
        Campaign.objects
        .select_related('pack_order')
        .filter(submission_token=submission_token)
        .first()
    )
    if campaign is None or campaign.pack_order is None:
        return None
    return campaign, campaign.pack_order


def submit_campaign(draft, owner, submission_token):
    """
    Creates the campaign and its pending pack order in one transaction.
    Calling again with the same submission token returns the pair created
    the first time.
    """
    if owner is None or not owner.is_authenticated:
        raise SubmissionError("You need to be signed in to create a campaign.")

    existing = _existing_submission(submission_token)
    if existing:
        logger.info(f"Campaign {existing[0].id} already created for submission {submission_token}.")
        return existing

    try:
        with transaction.atomic():
            campaign = create_campaign(draft, owner, submission_token)
            pack_order = create_pack_order(campaign, draft.pack, draft.shipping)
    except IntegrityError:
        # A concurrent request with the same token won the race.
        existing = _existing_submission(submission_token)
        if existing:
            return existing
        logger.error(f"Integrity error creating campaign for {owner.email}.", exc_info=True)
        raise SubmissionError("We couldn't create your campaign. Please try again.")
    except DatabaseError as e:
        logger.error(f"Database error creating campaign for {owner.email}: {e}", exc_info=True)
        raise SubmissionError("We couldn't create your campaign. Please try again.") from e

    logger.info(f"Campaign {campaign.id} created by {owner.email} with pack order {pack_order.id}.")
    return campaign, pack_order
