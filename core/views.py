from django.shortcuts import render

from campaigns.models import Campaign


def home(request):
    """
    Landing page listing the campaigns that are live for the public.
    Freshly created campaigns stay hidden until staff approve them.
    """
    campaigns = Campaign.objects.public().order_by('event_date')
    return render(request, 'core/home.html', {'campaigns': campaigns})
