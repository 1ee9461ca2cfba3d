"""
URL configuration for Coffee_Morning project.
"""
from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path('admin/', admin.site.urls),

    # Allauth URLs
    path('accounts/', include('allauth.urls')),

    path('', include('core.urls', namespace='core')),
    path('campaigns/', include('campaigns.urls', namespace='campaigns')),
    path('checkout/', include('payments.urls', namespace='payments')),
]
