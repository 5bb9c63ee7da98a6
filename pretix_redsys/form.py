import logging
import time
from collections import OrderedDict, namedtuple

from . import encrypter
from .config import (
    CURRENCY_CODES, OPTIONAL_PARAMS, ORDER_NUMBER_MAX_LENGTH, ORDER_NUMBER_MIN_LENGTH,
    REQUIRED_PARAMS, SIGNATURE_VERSION, RedsysConfig,
)
from .exceptions import MissingParameters, UnsupportedCurrency
from .signature import RedsysSignature

logger = logging.getLogger('pretix.plugins.redsys')

# What the buyer's browser has to POST to the hosted payment page
RedsysForm = namedtuple('RedsysForm', ['action', 'method', 'fields'])


def translate_currency(currency: str) -> str:
    """Translate an ISO 4217 code into the numeric code Redsys expects"""
    try:
        return CURRENCY_CODES[currency]
    except KeyError:
        raise UnsupportedCurrency(currency)


def format_order_number(order_number, timestamp: int = None) -> str:
    """
    Make an order number Redsys compliant (at most 12 characters).

    The id is zero padded to 4 characters and suffixed with ``T`` plus the reversed
    Unix timestamp, so that retries of the same order get different numbers while
    :func:`pretix_redsys.manager.parse_order_id` can still recover the id.
    """
    order_number = str(order_number).rjust(ORDER_NUMBER_MIN_LENGTH, '0')
    if timestamp is None:
        timestamp = int(time.time())
    order_number += 'T' + str(timestamp)[::-1]
    return order_number[:ORDER_NUMBER_MAX_LENGTH]


class RedsysFormBuilder:
    """Builds and signs the parameters of an outbound payment request"""

    translate_currency = staticmethod(translate_currency)
    format_order_number = staticmethod(format_order_number)

    def __init__(self, bridge, url_factory, config: RedsysConfig):
        self.bridge = bridge
        self.url_factory = url_factory
        self.config = config

    def build_parameters(self) -> OrderedDict:
        order_id = self.bridge.get_order_id()
        extra_data = self.bridge.get_extra_data() or {}

        parameters = OrderedDict([
            ('Ds_Merchant_TransactionType', extra_data.get('transaction_type', 0)),
            ('Ds_Merchant_MerchantURL', self.url_factory.get_merchant_url()),
            ('Ds_Merchant_UrlOK', self.url_factory.get_url_ok(order_id)),
            ('Ds_Merchant_UrlKO', self.url_factory.get_url_ko(order_id)),
            ('Ds_Merchant_Amount', str(self.bridge.get_amount())),
            ('Ds_Merchant_Order', format_order_number(order_id)),
            ('Ds_Merchant_MerchantCode', self.config.merchant_code),
            ('Ds_Merchant_Currency', translate_currency(self.bridge.get_currency())),
            ('Ds_Merchant_Terminal', self.config.terminal),
        ])

        # Optional parameters, only sent when the bridge provides them
        for extra_key, param in OPTIONAL_PARAMS.items():
            if extra_key in extra_data:
                parameters[param] = extra_data[extra_key]

        check_required_parameters(parameters)
        return parameters

    def build(self) -> OrderedDict:
        """The three fields the hosted payment page expects"""
        parameters = self.build_parameters()
        signature = RedsysSignature.for_request(parameters, self.config.secret_key)

        logger.info(f'Redsys request built for order {parameters["Ds_Merchant_Order"]} '
                    f'(amount {parameters["Ds_Merchant_Amount"]}, currency {parameters["Ds_Merchant_Currency"]})')

        return OrderedDict([
            ('Ds_SignatureVersion', SIGNATURE_VERSION),
            ('Ds_MerchantParameters', encrypter.encode(parameters)),
            ('Ds_Signature', signature.normalized()),
        ])

    def build_form(self) -> RedsysForm:
        return RedsysForm(action=self.config.url, method='POST', fields=self.build())


def check_required_parameters(parameters: dict):
    missing = [
        param for param in REQUIRED_PARAMS
        if parameters.get(param) is None or parameters.get(param) == ''
    ]
    if missing:
        raise MissingParameters(missing)
