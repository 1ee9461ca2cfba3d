"""
Working memory of the campaign wizard.

Plain data holders only: values are kept exactly as the user typed them
(apart from eircodes, which are upper-cased on entry) and validated later
by the step forms. The whole draft round-trips through the Django session
as a dict. Passwords from the account step are never stored here.
"""
from dataclasses import asdict, dataclass, field, fields

from core.constants import DEFAULT_COUNTRY

from .constants import (
    DEFAULT_PACK, DEFAULT_TSHIRT_SIZE, PACK_OPTIONS,
    STEP_BASIC_INFO, STEP_EVENT_DETAILS, STEP_FUNDRAISING_GOAL,
    STEP_PACK_SELECTION, STEP_SOCIAL_MEDIA,
)

UPPERCASED_FIELDS = ('eircode',)


@dataclass
class CampaignDraft:
    title: str = ''
    organizer: str = ''
    email: str = ''
    story: str = ''
    image: str = ''
    county: str = ''
    eircode: str = ''
    location: str = ''
    event_date: str = ''
    event_time: str = '10:00'
    goal_amount: str = ''
    facebook: str = ''
    twitter: str = ''
    instagram: str = ''
    whatsapp: str = ''


@dataclass
class AuthDraft:
    email: str = ''
    full_name: str = ''
    county: str = ''
    eircode: str = ''


@dataclass
class PackSelection:
    pack: str = DEFAULT_PACK
    shirt_1: str = DEFAULT_TSHIRT_SIZE
    shirt_2: str = DEFAULT_TSHIRT_SIZE
    shirt_3: str = DEFAULT_TSHIRT_SIZE
    shirt_4: str = DEFAULT_TSHIRT_SIZE

    @property
    def option(self):
        return PACK_OPTIONS[self.pack]

    @property
    def price(self):
        return self.option['price']

    def sizes(self):
        """Sizes for the t-shirts included in the selected pack only."""
        return [getattr(self, f'shirt_{i}') for i in range(1, self.option['tshirts'] + 1)]


@dataclass
class ShippingAddress:
    name: str = ''
    address_line_1: str = ''
    address_line_2: str = ''
    city: str = ''
    county: str = ''
    eircode: str = ''
    country: str = DEFAULT_COUNTRY
    mobile_number: str = ''

    def snapshot(self):
        address = asdict(self)
        address.pop('mobile_number')
        return address


# Fields each wizard step edits, mapped to the draft section holding them.
STEP_FIELDS = {
    STEP_BASIC_INFO: {
        'title': 'campaign', 'organizer': 'campaign', 'email': 'campaign',
        'story': 'campaign', 'image': 'campaign',
    },
    STEP_EVENT_DETAILS: {
        'county': 'campaign', 'eircode': 'campaign', 'location': 'campaign',
        'event_date': 'campaign', 'event_time': 'campaign',
    },
    STEP_FUNDRAISING_GOAL: {
        'goal_amount': 'campaign',
    },
    STEP_SOCIAL_MEDIA: {
        'facebook': 'campaign', 'twitter': 'campaign',
        'instagram': 'campaign', 'whatsapp': 'campaign',
    },
    STEP_PACK_SELECTION: {
        'pack': 'pack',
        'shirt_1': 'pack', 'shirt_2': 'pack', 'shirt_3': 'pack', 'shirt_4': 'pack',
        'name': 'shipping', 'address_line_1': 'shipping', 'address_line_2': 'shipping',
        'city': 'shipping', 'county': 'shipping', 'eircode': 'shipping',
        'country': 'shipping', 'mobile_number': 'shipping',
    },
}


def _build(cls, data):
    known = {f.name for f in fields(cls)}
    return cls(**{key: value for key, value in (data or {}).items() if key in known})


@dataclass
class WizardDraft:
    campaign: CampaignDraft = field(default_factory=CampaignDraft)
    auth: AuthDraft = field(default_factory=AuthDraft)
    pack: PackSelection = field(default_factory=PackSelection)
    shipping: ShippingAddress = field(default_factory=ShippingAddress)

    def set_field(self, step, name, value):
        """
        Stores one field for the given step. Returns False when the step
        has no such field, leaving the draft untouched.
        """
        section = STEP_FIELDS.get(step, {}).get(name)
        if section is None:
            return False
        value = '' if value is None else str(value)
        if name in UPPERCASED_FIELDS:
            value = value.upper()
        setattr(getattr(self, section), name, value)
        return True

    def update(self, step, data):
        for name in STEP_FIELDS.get(step, {}):
            if name in data:
                self.set_field(step, name, data.get(name))

    def step_data(self, step):
        return {
            name: getattr(getattr(self, section), name)
            for name, section in STEP_FIELDS.get(step, {}).items()
        }

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            campaign=_build(CampaignDraft, data.get('campaign')),
            auth=_build(AuthDraft, data.get('auth')),
            pack=_build(PackSelection, data.get('pack')),
            shipping=_build(ShippingAddress, data.get('shipping')),
        )
