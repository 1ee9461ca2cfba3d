from django.contrib import admin

from payments.models import PackOrder

from .models import Campaign


class PackPaymentReviewFilter(admin.SimpleListFilter):
    title = 'review queue'
    parameter_name = 'review'

    def lookups(self, request, model_admin):
        return [
            ('ready', 'Ready for approval'),
            ('awaiting_payment', 'Awaiting pack payment'),
        ]

    def queryset(self, request, queryset):
        if self.value() == 'ready':
            return queryset.ready_for_approval()
        if self.value() == 'awaiting_payment':
            return queryset.awaiting_pack_payment()
        return queryset


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ('title', 'organizer', 'county', 'event_date', 'goal_amount',
                    'pack_payment_status', 'is_approved', 'is_active', 'created_at')
    list_filter = (PackPaymentReviewFilter, 'is_approved', 'is_active', 'pack_payment_status', 'county')
    search_fields = ('title', 'organizer', 'email', 'owner__email')
    date_hierarchy = 'created_at'
    readonly_fields = ('pack_order', 'pack_payment_status', 'submission_token', 'created_at', 'updated_at')
    actions = ['approve_campaigns', 'reject_campaigns']

    @admin.action(description='Approve selected campaigns')
    def approve_campaigns(self, request, queryset):
        unpaid = queryset.exclude(pack_payment_status=PackOrder.STATUS_COMPLETED).count()
        updated = queryset.update(is_approved=True, is_active=True)
        self.message_user(request, f"{updated} campaign(s) approved.")
        if unpaid:
            self.message_user(request, f"{unpaid} of them have not paid for their pack yet.", level='warning')

    @admin.action(description='Reject selected campaigns')
    def reject_campaigns(self, request, queryset):
        updated = queryset.update(is_approved=False, is_active=False)
        self.message_user(request, f"{updated} campaign(s) rejected.")
