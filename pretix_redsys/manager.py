import logging

from . import encrypter
from .config import RESULT_ORDER_KEY, RESULT_PARAMS, RedsysConfig
from .exceptions import (
    InvalidSignature, MissingParameters, OrderNotFound, PaymentProcessingFailed,
)
from .method import RedsysMethod
from .signature import RedsysSignature

logger = logging.getLogger('pretix.plugins.redsys')


def parse_order_id(ds_order) -> int:
    """Recover our order id from a Redsys order number (``0042T1234567`` -> 42)"""
    head = str(ds_order).split('T', 1)[0]
    try:
        return int(head)
    except ValueError:
        raise OrderNotFound(f'Cannot extract an order id from {ds_order!r}')


def check_result_parameters(parameters: dict):
    missing = [param for param in RESULT_PARAMS if param not in parameters]
    if missing:
        raise MissingParameters(missing)


class RedsysManager:
    """
    Drives a Redsys payment through its lifecycle.

    ``process_payment`` prepares the redirection of the buyer to the hosted
    payment page, ``process_result`` validates the notification Redsys posts
    back once the buyer is done and tells the dispatcher how it went.
    """

    def __init__(self, form_builder, bridge, dispatcher, config: RedsysConfig):
        self.form_builder = form_builder
        self.bridge = bridge
        self.dispatcher = dispatcher
        self.config = config

    def process_payment(self):
        """
        Notify the order load, make sure an order is there and return the signed form.

        Raises:
            OrderNotFound: the bridge has no order loaded
        """
        method = RedsysMethod()

        self.dispatcher.on_order_load(self.bridge, method)

        if not self.bridge.get_order():
            raise OrderNotFound('No order loaded in payment bridge')

        self.dispatcher.on_order_created(self.bridge, method)

        return self.form_builder.build_form()

    def process_result(self, parameters: dict) -> RedsysMethod:
        """
        Validate a Redsys notification and dispatch its outcome.

        Nothing is looked up or dispatched before the signature is verified. Once
        the order is located ``on_order_done`` always fires, followed by either
        ``on_order_success`` or ``on_order_fail``.

        Raises:
            MissingParameters: an envelope field is absent
            MalformedPayload: Ds_MerchantParameters cannot be decoded
            InvalidSignature: Ds_Signature does not match
            OrderNotFound: raised by the bridge when the order does not exist
            PaymentProcessingFailed: Redsys did not authorise the payment
        """
        check_result_parameters(parameters)

        decoded = encrypter.decode(parameters['Ds_MerchantParameters'])

        signature = RedsysSignature.for_result(decoded, self.config.secret_key)
        if not signature.matches(parameters['Ds_Signature']):
            logger.warning(f'Invalid Redsys signature for order {decoded.get(RESULT_ORDER_KEY)}')
            raise InvalidSignature()

        method = RedsysMethod.from_result(parameters, decoded)

        order_id = parse_order_id(decoded[RESULT_ORDER_KEY])
        self.bridge.find_order(order_id)
        logger.info(f'Redsys notification for order {order_id}: Ds_Response={method.ds_response}')

        # Paid process has ended, no matter the result
        self.dispatcher.on_order_done(self.bridge, method)

        if not method.is_transaction_successful():
            self.dispatcher.on_order_fail(self.bridge, method)
            raise PaymentProcessingFailed(method.ds_response)

        self.dispatcher.on_order_success(self.bridge, method)
        return method
