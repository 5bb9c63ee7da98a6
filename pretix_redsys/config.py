# Redsys Plugin Configuration

from dataclasses import dataclass, field

# Pretix stores payment provider settings with a 'payment_' prefix before the provider identifier
# e.g., 'payment_redsys_secret_key' instead of just 'redsys_secret_key'
DEFAULT_SETTINGS = {
    'merchant_code': '',
    'terminal': '1',
    'secret_key': '',
    'endpoint': 'test',
    'transaction_type': '0',  # 0 = authorisation
    'merchant_name': '',
}

# Hosted payment page (redirection) endpoints
ENDPOINTS = {
    'test': 'https://sis-t.redsys.es:25443/sis/realizarPago',
    'live': 'https://sis.redsys.es/sis/realizarPago',
}

SIGNATURE_VERSION = 'HMAC_SHA256_V1'

# Parameters that must be present before an outbound request is signed
REQUIRED_PARAMS = [
    'Ds_Merchant_MerchantCode',
    'Ds_Merchant_Amount',
    'Ds_Merchant_Order',
    'Ds_Merchant_Currency',
    'Ds_Merchant_Terminal',
    'Ds_Merchant_TransactionType',
    'Ds_Merchant_UrlOK',
    'Ds_Merchant_UrlKO',
    'Ds_Merchant_MerchantURL',
]

# Extra data key -> optional gateway parameter
OPTIONAL_PARAMS = {
    'product_description': 'Ds_Merchant_ProductDescription',
    'merchant_titular': 'Ds_Merchant_Titular',
    'merchant_name': 'Ds_Merchant_MerchantName',
    'merchant_data': 'Ds_Merchant_MerchantData',
}

# Fields of the asynchronous notification envelope
RESULT_PARAMS = [
    'Ds_MerchantParameters',
    'Ds_Signature',
    'Ds_SignatureVersion',
]

# Parameter whose value seeds the key derivation, per direction
REQUEST_ORDER_KEY = 'Ds_Merchant_Order'
RESULT_ORDER_KEY = 'Ds_Order'

ORDER_NUMBER_MIN_LENGTH = 4
ORDER_NUMBER_MAX_LENGTH = 12

# Ds_Response values meaning an authorised transaction
SUCCESS_RESPONSE_RANGE = (0, 99)

# ISO 4217 -> Redsys numeric currency code
CURRENCY_CODES = {
    'EUR': '978',
    'USD': '840',
    'GBP': '826',
    'JPY': '392',
    'ARS': '032',
    'CAD': '124',
    'CLF': '152',
    'COP': '170',
    'INR': '356',
    'MXN': '484',
    'PEN': '604',
    'CHF': '756',
    'BRL': '986',
    'VEF': '937',
    'TRY': '949',
}


@dataclass(frozen=True)
class RedsysConfig:
    """Merchant account configuration, read once per request and never mutated"""

    merchant_code: str
    terminal: str
    secret_key: str = field(repr=False)
    endpoint: str = 'test'

    @property
    def url(self) -> str:
        return ENDPOINTS.get(self.endpoint, ENDPOINTS['test'])

    @property
    def is_test(self) -> bool:
        return self.endpoint != 'live'
