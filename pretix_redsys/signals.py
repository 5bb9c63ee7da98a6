import logging

from django.dispatch import Signal, receiver
from pretix.base.signals import register_payment_providers

logger = logging.getLogger('pretix.plugins.redsys')

# Payment lifecycle signals, sent by PretixEventDispatcher with
# sender=<Event>, bridge=<PretixPaymentBridge> and method=<RedsysMethod>.
# redsys_order_done is sent exactly once per verified notification, before
# redsys_order_success or redsys_order_fail.
redsys_order_load = Signal()
redsys_order_created = Signal()
redsys_order_done = Signal()
redsys_order_success = Signal()
redsys_order_fail = Signal()


@receiver(register_payment_providers, dispatch_uid="payment_redsys")
def register_payment_provider(sender, **kwargs):
    from .payment import RedsysProvider

    logger.debug('Registering Redsys payment provider')
    return RedsysProvider
