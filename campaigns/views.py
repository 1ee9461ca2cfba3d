import logging

from django.conf import settings
from django.http import HttpResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.views.decorators.http import require_GET, require_POST

from accounts.forms import AuthStepForm
from accounts.services import sign_in, sign_up
from payments.models import PackOrder

from .constants import PACK_OPTIONS, STEP_AUTH, STEP_PAYMENT
from .forms import STEP_FORMS
from .models import Campaign
from .services import SubmissionError, submit_campaign
from .wizard import CampaignWizard, StepIncompleteError, SubmissionInProgressError, WizardError

logger = logging.getLogger(__name__)


def _load_wizard(request):
    wizard = CampaignWizard.from_session(request.session)
    if wizard is None:
        wizard = CampaignWizard.start(request.user)
        wizard.save(request.session)
    elif wizard.step == STEP_AUTH and not wizard.authenticated and request.user.is_authenticated:
        # Signed in outside the wizard, e.g. through the allauth login page.
        wizard.complete_auth(request.user)
        wizard.save(request.session)
    return wizard


def _wizard_context(request, wizard, form=None, auth_form=None):
    step = wizard.step
    if form is None and step in STEP_FORMS:
        form = STEP_FORMS[step](initial=wizard.draft.step_data(step))
    if auth_form is None and step == STEP_AUTH:
        auth_form = AuthStepForm(initial={'mode': AuthStepForm.MODE_SIGNUP})

    context = {
        'wizard': wizard,
        'step': step,
        'form': form,
        'auth_form': auth_form,
        'can_proceed': wizard.can_proceed(),
        'pack_options': PACK_OPTIONS,
    }
    if step == STEP_PAYMENT and wizard.pack_order_id:
        context['pack_order'] = (
            PackOrder.objects.select_related('campaign')
            .filter(pk=wizard.pack_order_id, user=request.user)
            .first()
        )
        context['stripe_publishable_key'] = settings.STRIPE_PUBLISHABLE_KEY
    return context


def _render_wizard(request, wizard, status=200, **forms):
    template = 'campaigns/partials/wizard_step.html' if request.htmx else 'campaigns/create_campaign.html'
    return render(request, template, _wizard_context(request, wizard, **forms), status=status)


@require_GET
def create_campaign(request):
    """Mounts the wizard, resuming a draft already held in the session."""
    if request.GET.get('restart'):
        CampaignWizard.discard(request.session)
    wizard = _load_wizard(request)
    return render(request, 'campaigns/create_campaign.html', _wizard_context(request, wizard))


@require_POST
def wizard_field(request):
    """Stores changed fields of the current step and refreshes the navigation buttons."""
    wizard = _load_wizard(request)
    can_proceed = wizard.update_step(request.POST)
    wizard.save(request.session)

    response = render(request, 'campaigns/partials/wizard_nav.html', {
        'wizard': wizard,
        'can_proceed': can_proceed,
    })
    response['HX-Trigger'] = 'wizardFieldUpdated'
    return response


@require_POST
def wizard_next(request):
    wizard = _load_wizard(request)
    wizard.update_step(request.POST)
    form = None
    try:
        wizard.next()
    except StepIncompleteError:
        form = wizard.step_form()
    except WizardError as e:
        wizard.error = str(e)
    wizard.save(request.session)
    return _render_wizard(request, wizard, form=form)


@require_POST
def wizard_back(request):
    wizard = _load_wizard(request)
    try:
        wizard.back()
    except WizardError as e:
        wizard.error = str(e)
    wizard.save(request.session)
    return _render_wizard(request, wizard)


@require_POST
def wizard_cancel(request):
    """Discards the draft. Also used to close the wizard after payment."""
    CampaignWizard.discard(request.session)
    if request.htmx:
        response = HttpResponse(status=204)
        response['HX-Redirect'] = reverse('core:home')
        return response
    return redirect('core:home')


@require_POST
def wizard_auth(request):
    """Signs the user up or in from the Account Setup step."""
    wizard = _load_wizard(request)
    if wizard.step != STEP_AUTH or wizard.authenticated:
        return _render_wizard(request, wizard)

    auth_form = AuthStepForm(request.POST)
    if not auth_form.is_valid():
        return _render_wizard(request, wizard, auth_form=auth_form)

    data = auth_form.cleaned_data
    if data['mode'] == AuthStepForm.MODE_SIGNUP:
        result = sign_up(
            request, data['email'], data['password'],
            full_name=data['full_name'], county=data['county'], eircode=data['eircode'],
        )
    else:
        result = sign_in(request, data['email'], data['password'])

    if not result.ok:
        auth_form.add_error(None, result.error)
        return _render_wizard(request, wizard, auth_form=auth_form)

    wizard.draft.auth.email = data['email']
    wizard.draft.auth.full_name = data.get('full_name', '')
    wizard.draft.auth.county = data.get('county', '')
    wizard.draft.auth.eircode = data.get('eircode', '')
    wizard.complete_auth(result.user)
    wizard.save(request.session)
    return _render_wizard(request, wizard)


@require_POST
def wizard_submit(request):
    """Creates the campaign and pack order, then moves on to payment."""
    wizard = _load_wizard(request)
    wizard.update_step(request.POST)
    form = None
    status = 200

    def submitter(w):
        return submit_campaign(w.draft, request.user, w.submission_token)

    try:
        wizard.submit(submitter)
    except StepIncompleteError:
        form = wizard.step_form()
    except SubmissionInProgressError as e:
        wizard.error = str(e)
        status = 409
    except (SubmissionError, WizardError) as e:
        logger.warning(f"Campaign submission failed for session wizard {wizard.submission_token}: {e}")
        wizard.error = str(e)

    wizard.save(request.session)
    return _render_wizard(request, wizard, status=status, form=form)


def campaign_list(request):
    campaigns = Campaign.objects.public().order_by('event_date')
    return render(request, 'campaigns/campaign_list.html', {'campaigns': campaigns})
