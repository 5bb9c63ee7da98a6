class RedsysException(Exception):
    """Base class for every error raised while talking to Redsys"""


class MissingParameters(RedsysException):
    """One or more required parameters were not received"""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(', '.join(self.missing))


class MalformedPayload(RedsysException):
    """Ds_MerchantParameters is not base64 encoded JSON object"""


class InvalidSignature(RedsysException):
    def __init__(self):
        super().__init__('Signature does not match the received parameters')


class UnsupportedCurrency(RedsysException):
    def __init__(self, currency):
        self.currency = currency
        super().__init__(f'Currency {currency!r} is not supported by Redsys')


class OrderNotFound(RedsysException):
    pass


class PaymentProcessingFailed(RedsysException):
    """Redsys answered with a response code outside the authorised range"""

    def __init__(self, response_code=None):
        self.response_code = response_code
        super().__init__(f'Payment was not authorised (Ds_Response={response_code})')


class InvalidKeyMaterial(RedsysException):
    pass
