import time

from django.contrib.auth.models import AnonymousUser
from django.contrib.sessions.middleware import SessionMiddleware
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse

from campaigns.wizard import WIZARD_SESSION_KEY

from .adapter import AccountAdapter
from .forms import AuthStepForm
from .middleware import InactivityLogoutMiddleware
from .models import User
from .services import sign_in, sign_up

PASSWORD = 'C0ffee-Morning-2024!'


def session_request(path='/'):
    request = RequestFactory().post(path)
    SessionMiddleware(lambda r: None).process_request(request)
    request.session.save()
    request.user = AnonymousUser()
    return request


class UserModelTests(TestCase):
    def test_email_doubles_as_username(self):
        user = User.objects.create_user(email='Sarah@Example.com', password=PASSWORD)
        self.assertEqual(user.username, 'Sarah@example.com')
        self.assertEqual(str(user), 'Sarah@example.com')

    def test_eircode_is_uppercased(self):
        user = User.objects.create_user(email='sarah@example.com', password=PASSWORD, eircode='d02 x285')
        self.assertEqual(user.eircode, 'D02 X285')

    def test_full_name_preferred(self):
        user = User(email='sarah@example.com', first_name='S', last_name='B', full_name='Sarah Byrne')
        self.assertEqual(user.get_full_name(), 'Sarah Byrne')
        user.full_name = ''
        self.assertEqual(user.get_full_name(), 'S B')


class AuthServiceTests(TestCase):
    def test_sign_up_creates_and_logs_in(self):
        request = session_request()
        result = sign_up(request, 'sarah@example.com', PASSWORD,
                         full_name='Sarah Byrne', county='Cork', eircode='t12 ab34')

        self.assertTrue(result.ok)
        self.assertEqual(result.user.full_name, 'Sarah Byrne')
        self.assertEqual(result.user.eircode, 'T12 AB34')
        self.assertEqual(int(request.session['_auth_user_id']), result.user.pk)

    def test_sign_up_rejects_existing_email(self):
        User.objects.create_user(email='sarah@example.com', password=PASSWORD)
        result = sign_up(session_request(), 'SARAH@example.com', PASSWORD)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, 'An account with this email already exists. Please sign in instead.')
        self.assertEqual(User.objects.count(), 1)

    def test_sign_up_losing_username_race_reports_existing_account(self):
        # Username is taken but the email check passes, as when a parallel sign-up commits first.
        User.objects.create_user(email='other@example.com', username='sarah@example.com', password=PASSWORD)
        request = session_request()

        result = sign_up(request, 'sarah@example.com', PASSWORD)

        self.assertFalse(result.ok)
        self.assertEqual(result.error, 'An account with this email already exists. Please sign in instead.')
        self.assertEqual(User.objects.count(), 1)
        self.assertNotIn('_auth_user_id', request.session)

    def test_sign_up_rejects_weak_password(self):
        result = sign_up(session_request(), 'sarah@example.com', '123')
        self.assertFalse(result.ok)
        self.assertFalse(User.objects.exists())

    def test_sign_in_is_case_insensitive_on_email(self):
        user = User.objects.create_user(email='sarah@example.com', password=PASSWORD)
        request = session_request()
        result = sign_in(request, 'Sarah@Example.com', PASSWORD)
        self.assertTrue(result.ok)
        self.assertEqual(result.user, user)

    def test_sign_in_wrong_password(self):
        User.objects.create_user(email='sarah@example.com', password=PASSWORD)
        result = sign_in(session_request(), 'sarah@example.com', 'nope')
        self.assertEqual(result.error, 'Invalid email or password.')

    def test_sign_in_unknown_email(self):
        result = sign_in(session_request(), 'ghost@example.com', PASSWORD)
        self.assertFalse(result.ok)


class AuthStepFormTests(TestCase):
    def signup(self, **overrides):
        data = {
            'mode': 'signup', 'full_name': 'Sarah Byrne',
            'email': 'sarah@example.com', 'confirm_email': 'sarah@example.com',
            'password': PASSWORD, 'confirm_password': PASSWORD,
            'county': 'Cork', 'eircode': 't12 ab34',
        }
        data.update(overrides)
        return AuthStepForm(data)

    def test_valid_signup(self):
        form = self.signup()
        self.assertTrue(form.is_valid())
        self.assertEqual(form.cleaned_data['eircode'], 'T12 AB34')

    def test_signup_errors(self):
        self.assertIn('Email addresses do not match', self.signup(confirm_email='x@example.com').non_field_errors())
        self.assertIn('Passwords do not match', self.signup(confirm_password='other').non_field_errors())
        self.assertIn('Please select your county', self.signup(county='').non_field_errors())
        self.assertIn('Please enter your full name', self.signup(full_name='').errors['full_name'])

    def test_signin_only_needs_credentials(self):
        form = AuthStepForm({'mode': 'signin', 'email': 'sarah@example.com', 'password': PASSWORD})
        self.assertTrue(form.is_valid())


class InactivityLogoutMiddlewareTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email='sarah@example.com', password=PASSWORD)
        self.client.force_login(self.user)

    def set_last_activity(self, seconds_ago):
        session = self.client.session
        session[InactivityLogoutMiddleware.SESSION_KEY] = int(time.time()) - seconds_ago
        session.save()

    @override_settings(SESSION_INACTIVITY_TIMEOUT=60)
    def test_idle_user_is_signed_out(self):
        self.set_last_activity(120)
        self.client.get(reverse('core:home'))
        self.assertNotIn('_auth_user_id', self.client.session)

    @override_settings(SESSION_INACTIVITY_TIMEOUT=60)
    def test_activity_resets_the_timer(self):
        self.set_last_activity(30)
        self.client.get(reverse('core:home'))
        self.assertIn('_auth_user_id', self.client.session)
        self.assertGreaterEqual(
            self.client.session[InactivityLogoutMiddleware.SESSION_KEY], int(time.time()) - 1,
        )


class AccountAdapterTests(TestCase):
    def test_login_returns_to_unfinished_wizard(self):
        request = session_request()
        request.session[WIZARD_SESSION_KEY] = {'current_step': 1}
        self.assertEqual(AccountAdapter(request).get_login_redirect_url(request),
                         reverse('campaigns:create_campaign'))

    def test_username_populated_from_email(self):
        user = User(email='sarah@example.com')
        AccountAdapter().populate_username(session_request(), user)
        self.assertEqual(user.username, 'sarah@example.com')


class CampaignerSignupFormTests(TestCase):
    def test_allauth_signup_stores_campaigner_details(self):
        response = self.client.post(reverse('account_signup'), {
            'email': 'aoife@example.com',
            'password1': PASSWORD,
            'password2': PASSWORD,
            'full_name': 'Aoife Walsh',
            'county': 'Kerry',
            'eircode': 'v92 x2y3',
        })

        self.assertEqual(response.status_code, 302)
        user = User.objects.get(email='aoife@example.com')
        self.assertEqual(user.username, 'aoife@example.com')
        self.assertEqual(user.full_name, 'Aoife Walsh')
        self.assertEqual(user.county, 'Kerry')
        self.assertEqual(user.eircode, 'V92 X2Y3')
