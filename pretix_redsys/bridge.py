"""
Collaborators the Redsys flow talks to.

The order itself belongs to the host application: a :class:`PaymentBridge`
loads and describes it, a :class:`UrlFactory` knows where Redsys has to send
the buyer and the notification, and a :class:`PaymentEventDispatcher` is told
about every step of the payment lifecycle.
"""
import logging

logger = logging.getLogger('pretix.plugins.redsys')


class PaymentBridge:

    def get_order(self):
        """The order being paid, or None if none is loaded"""
        raise NotImplementedError()

    def find_order(self, order_id: int):
        """Load the order with the given id; raise OrderNotFound if there is none"""
        raise NotImplementedError()

    def get_order_id(self):
        raise NotImplementedError()

    def get_amount(self):
        """Amount in the currency's minor unit (cents)"""
        raise NotImplementedError()

    def get_currency(self) -> str:
        """ISO 4217 currency code"""
        raise NotImplementedError()

    def get_extra_data(self) -> dict:
        return {}


class UrlFactory:

    def get_merchant_url(self) -> str:
        """URL Redsys posts the asynchronous notification to"""
        raise NotImplementedError()

    def get_url_ok(self, order_id) -> str:
        raise NotImplementedError()

    def get_url_ko(self, order_id) -> str:
        raise NotImplementedError()


class PaymentEventDispatcher:
    """
    Lifecycle hooks, called in this order:

    - outbound: ``on_order_load`` then ``on_order_created``
    - notification: ``on_order_done`` then ``on_order_success`` or ``on_order_fail``
    """

    def on_order_load(self, bridge: PaymentBridge, method):
        logger.debug(f'Redsys order load: {method!r}')

    def on_order_created(self, bridge: PaymentBridge, method):
        logger.debug(f'Redsys order created: {method!r}')

    def on_order_done(self, bridge: PaymentBridge, method):
        logger.debug(f'Redsys order done: {method!r}')

    def on_order_success(self, bridge: PaymentBridge, method):
        logger.debug(f'Redsys order success: {method!r}')

    def on_order_fail(self, bridge: PaymentBridge, method):
        logger.debug(f'Redsys order fail: {method!r}')
