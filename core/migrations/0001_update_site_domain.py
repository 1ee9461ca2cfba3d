from django.conf import settings
from django.db import migrations

def update_site_domain(apps, schema_editor):
    Site = apps.get_model('sites', 'Site')
    # allauth builds absolute links (email confirmation) from the default site
    Site.objects.update_or_create(
        pk=settings.SITE_ID,
        defaults={'domain': settings.SITE_DOMAIN, 'name': settings.SITE_NAME},
    )

class Migration(migrations.Migration):

    dependencies = [
        ('sites', '0002_alter_domain_unique'),
    ]

    operations = [
        migrations.RunPython(update_site_domain, migrations.RunPython.noop),
    ]
