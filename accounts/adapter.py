from allauth.account.adapter import DefaultAccountAdapter
from allauth.account.utils import user_email, user_username
from django.urls import reverse

from campaigns.wizard import WIZARD_SESSION_KEY


class AccountAdapter(DefaultAccountAdapter):
    """
    Keeps allauth sign-ups consistent with accounts created inside the
    campaign wizard, and returns users to an unfinished wizard after login.
    """
    def populate_username(self, request, user):
        email = user_email(user)
        if email and len(email) <= 150:
            user_username(user, email)
            return
        super().populate_username(request, user)

    def get_login_redirect_url(self, request):
        if WIZARD_SESSION_KEY in request.session:
            return reverse('campaigns:create_campaign')
        return super().get_login_redirect_url(request)
