"""
Supported payment channels and per-channel payment detail validation.

Each channel belongs to a kind. The kind decides which detail fields the
patient must supply:
    mobile_money  -> phoneNumber
    bank_transfer -> accountNumber
referenceNumber is optional for every channel and bankName is always taken
from the channel itself.
"""
from telemed.errors import InvalidArgument
from telemed.utils.validation import clean_text

MOBILE_MONEY = 'mobile_money'
BANK_TRANSFER = 'bank_transfer'

REQUIRED_DETAILS = {
    MOBILE_MONEY: ('phoneNumber',),
    BANK_TRANSFER: ('accountNumber',),
}
OPTIONAL_DETAILS = ('referenceNumber',)

PAYMENT_METHODS = [
    {
        'id': 'telebirr',
        'name': 'Telebirr',
        'kind': MOBILE_MONEY,
        'description': 'Ethio Telecom Mobile Money',
        'icon': '📱',
        'instructions': 'Send money to 0912345678'
    },
    {
        'id': 'cbe_birr',
        'name': 'CBE Birr',
        'kind': BANK_TRANSFER,
        'description': 'Commercial Bank of Ethiopia',
        'icon': '🏦',
        'instructions': 'Transfer to account: 1000123456789'
    },
    {
        'id': 'dashen_bank',
        'name': 'Dashen Bank',
        'kind': BANK_TRANSFER,
        'description': 'Dashen Bank Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 1234567890'
    },
    {
        'id': 'awash_bank',
        'name': 'Awash Bank',
        'kind': BANK_TRANSFER,
        'description': 'Awash Bank Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 0987654321'
    },
    {
        'id': 'bank_of_abyssinia',
        'name': 'Bank of Abyssinia',
        'kind': BANK_TRANSFER,
        'description': 'Bank of Abyssinia Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 1122334455'
    },
    {
        'id': 'united_bank',
        'name': 'United Bank',
        'kind': BANK_TRANSFER,
        'description': 'United Bank Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 5566778899'
    },
    {
        'id': 'lion_bank',
        'name': 'Lion Bank',
        'kind': BANK_TRANSFER,
        'description': 'Lion Bank Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 6677889900'
    },
    {
        'id': 'cooperative_bank',
        'name': 'Cooperative Bank',
        'kind': BANK_TRANSFER,
        'description': 'Cooperative Bank Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 7788990011'
    },
    {
        'id': 'nib_bank',
        'name': 'NIB Bank',
        'kind': BANK_TRANSFER,
        'description': 'NIB Bank Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 8899001122'
    },
    {
        'id': 'wegagen_bank',
        'name': 'Wegagen Bank',
        'kind': BANK_TRANSFER,
        'description': 'Wegagen Bank Transfer',
        'icon': '🏦',
        'instructions': 'Transfer to account: 9900112233'
    },
]

METHODS_BY_ID = {method['id']: method for method in PAYMENT_METHODS}
METHOD_IDS = tuple(METHODS_BY_ID)


def list_payment_methods():
    return [dict(method) for method in PAYMENT_METHODS]


def get_payment_method(method_id):
    method = METHODS_BY_ID.get(method_id)
    if method is None:
        raise InvalidArgument(f'Unsupported payment method. Valid values: {", ".join(METHOD_IDS)}')
    return method


def validate_payment_details(method_id, details):
    """
    Normalize the detail fields for the channel. Unknown keys are dropped;
    a missing required field raises InvalidArgument.
    """
    method = get_payment_method(method_id)
    if details is None:
        details = {}
    if not isinstance(details, dict):
        raise InvalidArgument('Field "paymentDetails" must be an object')

    cleaned = {}
    for field in REQUIRED_DETAILS[method['kind']]:
        value = clean_text(details.get(field))
        if not value:
            raise InvalidArgument(f'Field "paymentDetails.{field}" is required for {method["name"]}')
        cleaned[field] = value

    for field in OPTIONAL_DETAILS:
        value = clean_text(details.get(field))
        if value:
            cleaned[field] = value

    cleaned['bankName'] = method['name']
    return cleaned
