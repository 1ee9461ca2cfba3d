"""
WSGI config for Coffee_Morning project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Coffee_Morning.settings')

application = get_wsgi_application()
