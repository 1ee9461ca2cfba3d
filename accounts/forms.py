from allauth.account.forms import SignupForm
from django import forms

from core.constants import COUNTY_CHOICES


class CampaignerSignupForm(SignupForm):
    full_name = forms.CharField(max_length=150, label='Full Name', required=True)
    county = forms.ChoiceField(choices=[('', 'Select your county')] + COUNTY_CHOICES, required=True)
    eircode = forms.CharField(max_length=10, label='Eircode', required=False)

    def clean_eircode(self):
        return self.cleaned_data.get('eircode', '').upper()

    def save(self, request):
        user = super(CampaignerSignupForm, self).save(request)
        user.full_name = self.cleaned_data['full_name']
        user.county = self.cleaned_data['county']
        user.eircode = self.cleaned_data['eircode']
        user.save()
        return user


class AuthStepForm(forms.Form):
    """
    Account step embedded in the campaign wizard. Signs a visitor up or in
    without leaving the wizard.
    """
    MODE_SIGNUP = 'signup'
    MODE_SIGNIN = 'signin'
    MODE_CHOICES = [
        (MODE_SIGNUP, 'Create an account'),
        (MODE_SIGNIN, 'Sign in'),
    ]

    mode = forms.ChoiceField(choices=MODE_CHOICES, initial=MODE_SIGNUP)
    full_name = forms.CharField(max_length=150, required=False)
    email = forms.EmailField()
    confirm_email = forms.EmailField(required=False)
    password = forms.CharField(widget=forms.PasswordInput)
    confirm_password = forms.CharField(widget=forms.PasswordInput, required=False)
    county = forms.ChoiceField(choices=[('', 'Select your county')] + COUNTY_CHOICES, required=False)
    eircode = forms.CharField(max_length=10, required=False)

    def clean_eircode(self):
        return self.cleaned_data.get('eircode', '').upper()

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('mode') != self.MODE_SIGNUP:
            return cleaned_data

        if not cleaned_data.get('full_name'):
            self.add_error('full_name', 'Please enter your full name')
        if cleaned_data.get('email') and cleaned_data.get('email') != cleaned_data.get('confirm_email'):
            raise forms.ValidationError('Email addresses do not match')
        if cleaned_data.get('password') != cleaned_data.get('confirm_password'):
            raise forms.ValidationError('Passwords do not match')
        if not cleaned_data.get('county'):
            raise forms.ValidationError('Please select your county')
        return cleaned_data
