from decimal import Decimal

# --- WIZARD STEPS ---
STEP_AUTH = 'auth'
STEP_BASIC_INFO = 'basic_info'
STEP_EVENT_DETAILS = 'event_details'
STEP_FUNDRAISING_GOAL = 'fundraising_goal'
STEP_SOCIAL_MEDIA = 'social_media'
STEP_PACK_SELECTION = 'pack_selection'
STEP_PAYMENT = 'payment'

STEP_TITLES = {
    STEP_AUTH: 'Account Setup',
    STEP_BASIC_INFO: 'Basic Information',
    STEP_EVENT_DETAILS: 'Event Details',
    STEP_FUNDRAISING_GOAL: 'Fundraising Goal',
    STEP_SOCIAL_MEDIA: 'Social Media',
    STEP_PACK_SELECTION: 'Pack Selection',
    STEP_PAYMENT: 'Payment',
}

# --- FUNDRAISING GOAL (EUR) ---
MIN_GOAL_AMOUNT = 100
MAX_GOAL_AMOUNT = 50000

# --- STARTER PACKS ---
PACK_FREE = 'free'
PACK_MEDIUM = 'medium'
PACK_LARGE = 'large'

# Every tier is charged: the free pack still carries postage.
PACK_OPTIONS = {
    PACK_FREE: {'name': 'Free Starter Pack', 'price': Decimal('10.00'), 'tshirts': 0},
    PACK_MEDIUM: {'name': 'Medium Pack', 'price': Decimal('35.00'), 'tshirts': 2},
    PACK_LARGE: {'name': 'Large Pack', 'price': Decimal('60.00'), 'tshirts': 4},
}
PACK_CHOICES = [(key, option['name']) for key, option in PACK_OPTIONS.items()]
DEFAULT_PACK = PACK_FREE

TSHIRT_SIZES = ['XS', 'S', 'M', 'L', 'XL', 'XXL']
TSHIRT_SIZE_CHOICES = [(size, size) for size in TSHIRT_SIZES]
DEFAULT_TSHIRT_SIZE = 'M'
