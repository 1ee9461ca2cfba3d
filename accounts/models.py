from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """Custom manager for the User model. Email doubles as the username."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('The Email field must be set')
        email = self.normalize_email(email)
        extra_fields.setdefault('username', email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')
        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    full_name = models.CharField(max_length=150, blank=True)
    county = models.CharField(
        max_length=50,
        blank=True,
        help_text=_("Home county, used to prefill new campaigns and shipping addresses.")
    )
    eircode = models.CharField(max_length=10, blank=True)

    objects = UserManager()

    def save(self, *args, **kwargs):
        self.eircode = (self.eircode or '').upper()
        super().save(*args, **kwargs)

    def get_full_name(self):
        return self.full_name or super().get_full_name()

    def __str__(self):
        return self.email or self.username
