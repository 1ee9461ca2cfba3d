from celery import shared_task
from django.apps import apps
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags
from django.conf import settings
import logging

logger = logging.getLogger(__name__)

# context key -> (app label, model name, template variable)
REHYDRATED_OBJECTS = {
    'campaign_id': ('campaigns', 'Campaign', 'campaign'),
    'pack_order_id': ('payments', 'PackOrder', 'pack_order'),
    'user_id': ('accounts', 'User', 'user'),
}


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def send_transactional_email_task(self, recipient_email, subject, template_name, context):
    """
    Celery task: Sends a multipart (HTML and plain text) transactional email.

    This function contains the actual blocking call to the SMTP server.
    """
    try:
        context = dict(context)

        # Celery only carries JSON, so model instances travel as ids.
        for key, (app_label, model_name, variable) in REHYDRATED_OBJECTS.items():
            object_id = context.get(key)
            if not object_id:
                continue
            Model = apps.get_model(app_label, model_name)
            try:
                context[variable] = Model.objects.get(pk=object_id)
            except Model.DoesNotExist:
                logger.warning(f"{model_name} ID {object_id} not found for email task.")

        context['site_name'] = settings.SITE_NAME
        context['site_url'] = settings.SITE_URL

        html_content = render_to_string(template_name, context)
        text_content = strip_tags(html_content)

        email = EmailMultiAlternatives(
            subject=subject,
            body=text_content,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[recipient_email]
        )
        email.attach_alternative(html_content, "text/html")

        # fail_silently=False so Celery sees the exception and retries.
        email.send(fail_silently=False)

        logger.info(f"Successfully sent email to {recipient_email} with subject: {subject}")
        return True

    except Exception as exc:
        logger.error(f"Attempt {self.request.retries + 1} failed for email to {recipient_email}. Error: {exc}", exc_info=True)
        raise self.retry(exc=exc)
