from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from payments.models import PackOrder

from .constants import MAX_GOAL_AMOUNT, MIN_GOAL_AMOUNT


class CampaignQuerySet(models.QuerySet):
    def public(self):
        """Campaigns visible on the site: approved by staff and still running."""
        return self.filter(is_approved=True, is_active=True)

    def ready_for_approval(self):
        return self.filter(
            is_approved=False,
            is_active=True,
            pack_payment_status=PackOrder.STATUS_COMPLETED,
        )

    def awaiting_pack_payment(self):
        return self.filter(pack_payment_status=PackOrder.STATUS_PENDING)


class Campaign(models.Model):
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='campaigns')

    # --- BASIC INFORMATION ---
    title = models.CharField(max_length=200)
    organizer = models.CharField(max_length=150)
    email = models.EmailField()
    story = models.TextField()
    image = models.URLField(blank=True)

    # --- EVENT DETAILS ---
    county = models.CharField(max_length=50)
    eircode = models.CharField(max_length=10)
    location = models.CharField(max_length=255)
    event_date = models.DateField()
    event_time = models.TimeField()

    # --- FUNDRAISING ---
    goal_amount = models.PositiveIntegerField(
        validators=[MinValueValidator(MIN_GOAL_AMOUNT), MaxValueValidator(MAX_GOAL_AMOUNT)],
        help_text="Fundraising goal in EUR.",
    )
    raised_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    # --- SOCIAL MEDIA ---
    facebook = models.URLField(blank=True)
    twitter = models.URLField(blank=True)
    instagram = models.URLField(blank=True)
    whatsapp = models.CharField(max_length=255, blank=True)

    # --- MODERATION ---
    is_active = models.BooleanField(default=True)
    is_approved = models.BooleanField(default=False)

    # --- STARTER PACK ---
    pack_order = models.OneToOneField(
        PackOrder, on_delete=models.SET_NULL, null=True, blank=True, related_name='mirrored_campaign',
    )
    # Mirror of pack_order.payment_status, written by the webhook reconciler.
    pack_payment_status = models.CharField(
        max_length=20, choices=PackOrder.STATUS_CHOICES, default=PackOrder.STATUS_PENDING, db_index=True,
    )

    submission_token = models.UUIDField(
        unique=True, null=True, blank=True, editable=False,
        help_text="Wizard session key that makes campaign creation idempotent.",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CampaignQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def progress_percentage(self):
        if not self.goal_amount:
            return 0
        return min(100, int(self.raised_amount / self.goal_amount * 100))

    def approve(self):
        self.is_approved = True
        self.is_active = True
        self.save(update_fields=['is_approved', 'is_active', 'updated_at'])

    def reject(self):
        self.is_approved = False
        self.is_active = False
        self.save(update_fields=['is_approved', 'is_active', 'updated_at'])
