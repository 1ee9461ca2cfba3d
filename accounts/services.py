"""
Sign-up and sign-in used by the campaign wizard's account step.

Both calls log the user into the current session on success and report
failures as a message rather than raising, so the wizard can show the
message inline and stay on the account step.
"""
from dataclasses import dataclass
import logging

from django.contrib.auth import authenticate, get_user_model, login
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

logger = logging.getLogger(__name__)

MODEL_BACKEND = 'django.contrib.auth.backends.ModelBackend'
DUPLICATE_ACCOUNT_ERROR = "An account with this email already exists. Please sign in instead."


@dataclass
class AuthResult:
    user: object = None
    error: str = None

    @property
    def ok(self):
        return self.error is None


def sign_up(request, email, password, full_name='', county='', eircode=''):
    User = get_user_model()

    if User.objects.filter(email__iexact=email).exists():
        return AuthResult(error=DUPLICATE_ACCOUNT_ERROR)

    try:
        validate_password(password, User(email=email, full_name=full_name))
    except ValidationError as e:
        return AuthResult(error=' '.join(e.messages))

    try:
        # A concurrent sign-up can win the race after the check above.
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=password,
                full_name=full_name,
                county=county,
                eircode=eircode,
            )
    except IntegrityError:
        logger.info(f"Concurrent sign-up for {email} lost to an existing account")
        return AuthResult(error=DUPLICATE_ACCOUNT_ERROR)

    login(request, user, backend=MODEL_BACKEND)
    logger.info(f"New campaigner account created for {user.email}")
    return AuthResult(user=user)


def sign_in(request, email, password):
    User = get_user_model()

    # Lookup is case-insensitive on email; the backend authenticates on username.
    existing = User.objects.filter(email__iexact=email).first()
    user = None
    if existing is not None:
        user = authenticate(request, username=existing.username, password=password)

    if user is None:
        logger.info(f"Failed wizard sign-in attempt for {email}")
        return AuthResult(error='Invalid email or password.')

    login(request, user)
    return AuthResult(user=user)
