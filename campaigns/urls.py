from django.urls import path

from . import views

app_name = 'campaigns'

urlpatterns = [
    path('', views.campaign_list, name='campaign_list'),

    # --- CREATION WIZARD ---
    path('create/', views.create_campaign, name='create_campaign'),
    path('create/field/', views.wizard_field, name='wizard_field'),
    path('create/next/', views.wizard_next, name='wizard_next'),
    path('create/back/', views.wizard_back, name='wizard_back'),
    path('create/cancel/', views.wizard_cancel, name='wizard_cancel'),
    path('create/auth/', views.wizard_auth, name='wizard_auth'),
    path('create/submit/', views.wizard_submit, name='wizard_submit'),
]
