from . import encrypter
from .config import SUCCESS_RESPONSE_RANGE


def parse_response_code(value):
    """Ds_Response as an integer, or None if it is missing or not numeric"""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def is_successful_response(value) -> bool:
    code = parse_response_code(value)
    if code is None:
        return False
    low, high = SUCCESS_RESPONSE_RANGE
    return low <= code <= high


class RedsysMethod:
    """Payment method handed to every payment lifecycle hook"""

    payment_name = 'redsys'

    def __init__(self, ds_merchant_parameters=None, ds_signature_version=None, ds_signature=None,
                 decoded_parameters=None):
        self.ds_merchant_parameters = ds_merchant_parameters
        self.ds_signature_version = ds_signature_version
        self.ds_signature = ds_signature
        if decoded_parameters is None and ds_merchant_parameters is not None:
            decoded_parameters = encrypter.decode(ds_merchant_parameters)
        self.decoded_parameters = decoded_parameters or {}

    @classmethod
    def from_result(cls, parameters: dict, decoded: dict = None) -> 'RedsysMethod':
        return cls(
            ds_merchant_parameters=parameters['Ds_MerchantParameters'],
            ds_signature_version=parameters['Ds_SignatureVersion'],
            ds_signature=parameters['Ds_Signature'],
            decoded_parameters=decoded,
        )

    @property
    def ds_order(self):
        return self.decoded_parameters.get('Ds_Order')

    @property
    def ds_response(self):
        return self.decoded_parameters.get('Ds_Response')

    @property
    def ds_authorisation_code(self):
        return self.decoded_parameters.get('Ds_AuthorisationCode')

    def is_transaction_successful(self) -> bool:
        return is_successful_response(self.ds_response)

    def __repr__(self):
        return f'<RedsysMethod order={self.ds_order!r} response={self.ds_response!r}>'
