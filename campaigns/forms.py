from django import forms
from django.core.validators import MaxValueValidator, MinValueValidator
from django.utils import timezone

from core.constants import COUNTY_CHOICES, DEFAULT_COUNTRY

from .constants import (
    DEFAULT_PACK, MAX_GOAL_AMOUNT, MIN_GOAL_AMOUNT, PACK_CHOICES, PACK_OPTIONS,
    TSHIRT_SIZE_CHOICES, STEP_BASIC_INFO, STEP_EVENT_DETAILS,
    STEP_FUNDRAISING_GOAL, STEP_PACK_SELECTION, STEP_SOCIAL_MEDIA,
)

COUNTY_SELECT_CHOICES = [('', 'Select county')] + COUNTY_CHOICES


class BasicInfoForm(forms.Form):
    title = forms.CharField(
        max_length=200,
        widget=forms.TextInput(attrs={'placeholder': "e.g. Sarah's Coffee Morning for YSPI"}),
    )
    organizer = forms.CharField(max_length=150, label='Organiser name')
    email = forms.EmailField(label='Contact email')
    story = forms.CharField(
        widget=forms.Textarea(attrs={'rows': 5}),
        help_text='Tell supporters why you are holding this coffee morning.',
    )
    image = forms.URLField(required=False, label='Image URL')

    def clean_story(self):
        story = self.cleaned_data['story'].strip()
        if not story:
            raise forms.ValidationError("Please tell people about your campaign.")
        return story


class EventDetailsForm(forms.Form):
    county = forms.ChoiceField(choices=COUNTY_SELECT_CHOICES)
    eircode = forms.CharField(max_length=10)
    location = forms.CharField(max_length=255, label='Venue')
    event_date = forms.DateField(widget=forms.DateInput(attrs={'type': 'date'}))
    event_time = forms.TimeField(widget=forms.TimeInput(attrs={'type': 'time'}))

    def clean_eircode(self):
        return self.cleaned_data['eircode'].strip().upper()

    def clean_event_date(self):
        event_date = self.cleaned_data['event_date']
        if event_date < timezone.localdate():
            raise forms.ValidationError("The event date cannot be in the past.")
        return event_date


class FundraisingGoalForm(forms.Form):
    goal_amount = forms.IntegerField(
        label='Fundraising goal (EUR)',
        validators=[MinValueValidator(MIN_GOAL_AMOUNT), MaxValueValidator(MAX_GOAL_AMOUNT)],
    )


class SocialMediaForm(forms.Form):
    facebook = forms.URLField(required=False)
    twitter = forms.URLField(required=False, label='X / Twitter')
    instagram = forms.URLField(required=False)
    whatsapp = forms.CharField(required=False, max_length=255, label='WhatsApp group link')


class PackSelectionForm(forms.Form):
    """Pack tier, t-shirt sizes and the shipping address for the pack."""
    pack = forms.ChoiceField(choices=PACK_CHOICES, initial=DEFAULT_PACK, widget=forms.RadioSelect)
    shirt_1 = forms.ChoiceField(choices=TSHIRT_SIZE_CHOICES, required=False)
    shirt_2 = forms.ChoiceField(choices=TSHIRT_SIZE_CHOICES, required=False)
    shirt_3 = forms.ChoiceField(choices=TSHIRT_SIZE_CHOICES, required=False)
    shirt_4 = forms.ChoiceField(choices=TSHIRT_SIZE_CHOICES, required=False)

    # --- SHIPPING ---
    name = forms.CharField(max_length=150, label='Full name')
    address_line_1 = forms.CharField(max_length=255)
    address_line_2 = forms.CharField(max_length=255, required=False)
    city = forms.CharField(max_length=100, label='Town / City')
    county = forms.ChoiceField(choices=COUNTY_SELECT_CHOICES)
    eircode = forms.CharField(max_length=10)
    country = forms.CharField(max_length=100, initial=DEFAULT_COUNTRY)
    mobile_number = forms.CharField(max_length=30, required=False)

    def clean_eircode(self):
        return self.cleaned_data['eircode'].strip().upper()

    def clean(self):
        cleaned_data = super().clean()
        pack = cleaned_data.get('pack')
        if not pack:
            return cleaned_data

        included = PACK_OPTIONS[pack]['tshirts']
        for i in range(1, included + 1):
            if not cleaned_data.get(f'shirt_{i}'):
                self.add_error(f'shirt_{i}', "Please choose a size for each t-shirt.")
        return cleaned_data


STEP_FORMS = {
    STEP_BASIC_INFO: BasicInfoForm,
    STEP_EVENT_DETAILS: EventDetailsForm,
    STEP_FUNDRAISING_GOAL: FundraisingGoalForm,
    STEP_SOCIAL_MEDIA: SocialMediaForm,
    STEP_PACK_SELECTION: PackSelectionForm,
}
