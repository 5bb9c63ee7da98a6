import json
import logging
from collections import OrderedDict
from decimal import Decimal

from django import forms
from django.conf import settings as django_settings
from django.http import HttpRequest
from django.template.loader import get_template
from django.utils.translation import gettext_lazy as _

from pretix.base.forms import SecretKeySettingsField
from pretix.base.models import Event, InvoiceAddress, OrderPayment, Quota
from pretix.base.payment import BasePaymentProvider, PaymentException
from pretix.multidomain.urlreverse import build_absolute_uri

from .bridge import PaymentBridge, PaymentEventDispatcher, UrlFactory
from .config import CURRENCY_CODES, DEFAULT_SETTINGS, ENDPOINTS, RedsysConfig
from .exceptions import OrderNotFound, RedsysException
from .form import RedsysFormBuilder, translate_currency
from .manager import RedsysManager
from .signals import (
    redsys_order_created, redsys_order_done, redsys_order_fail, redsys_order_load,
    redsys_order_success,
)

logger = logging.getLogger('pretix.plugins.redsys')

# Redsys limits, in characters
PRODUCT_DESCRIPTION_MAX_LENGTH = 125
TITULAR_MAX_LENGTH = 60
MERCHANT_NAME_MAX_LENGTH = 25


class PretixPaymentBridge(PaymentBridge):
    """Exposes a pretix OrderPayment to the Redsys flow"""

    def __init__(self, provider, payment: OrderPayment = None):
        self.provider = provider
        self.event = provider.event
        self.payment = payment

    def get_order(self):
        return self.payment.order if self.payment else None

    def find_order(self, order_id: int):
        payment = OrderPayment.objects.filter(
            pk=order_id,
            provider=self.provider.identifier,
            order__event=self.event,
        ).select_related('order').first()

        if not payment:
            logger.warning(f'Redsys notification for unknown payment {order_id} in event {self.event.slug}')
            raise OrderNotFound(f'Payment {order_id} not found')

        self.payment = payment
        return payment.order

    def get_order_id(self):
        return self.payment.pk

    def get_amount(self):
        # Redsys expects the amount in the currency's minor unit
        places = getattr(django_settings, 'CURRENCY_PLACES', {}).get(self.event.currency, 2)
        return str(int((self.payment.amount * Decimal(10) ** places).to_integral_value()))

    def get_currency(self) -> str:
        return self.event.currency

    def get_extra_data(self) -> dict:
        order = self.payment.order
        extra_data = {
            'transaction_type': self.provider.get_setting('transaction_type'),
            'product_description': f'{self.event.name} - {order.code}'[:PRODUCT_DESCRIPTION_MAX_LENGTH],
            'merchant_data': order.code,
        }

        merchant_name = self.provider.get_setting('merchant_name')
        if merchant_name:
            extra_data['merchant_name'] = merchant_name[:MERCHANT_NAME_MAX_LENGTH]

        try:
            titular = order.invoice_address.name
        except InvoiceAddress.DoesNotExist:
            titular = None
        if titular:
            extra_data['merchant_titular'] = titular[:TITULAR_MAX_LENGTH]

        return extra_data


class PretixUrlFactory(UrlFactory):
    """Absolute URLs of the plugin's event views for one payment"""

    def __init__(self, event: Event, payment: OrderPayment = None):
        self.event = event
        self.payment = payment

    def get_merchant_url(self) -> str:
        return build_absolute_uri(self.event, 'plugins:pretix_redsys:notify')

    def _return_url(self, order_id, status):
        order = self.payment.order
        return build_absolute_uri(
            self.event,
            'plugins:pretix_redsys:return',
            kwargs={
                'order': order.code,
                'hash': order.tagged_secret('plugins:pretix_redsys'),
                'payment': order_id,
                'status': status,
            }
        )

    def get_url_ok(self, order_id) -> str:
        return self._return_url(order_id, 'ok')

    def get_url_ko(self, order_id) -> str:
        return self._return_url(order_id, 'ko')


class PretixEventDispatcher(PaymentEventDispatcher):
    """
    Applies the outcome of a Redsys notification to the pretix payment and
    re-broadcasts every lifecycle step as a Django signal.
    """

    def on_order_load(self, bridge, method):
        super().on_order_load(bridge, method)
        redsys_order_load.send(sender=bridge.event, bridge=bridge, method=method)

    def on_order_created(self, bridge, method):
        super().on_order_created(bridge, method)
        redsys_order_created.send(sender=bridge.event, bridge=bridge, method=method)

    def on_order_done(self, bridge, method):
        super().on_order_done(bridge, method)
        payment = bridge.payment

        # Preserve any existing info when updating with notification data
        try:
            existing_info = json.loads(payment.info or '{}')
        except ValueError:
            existing_info = {}
        payment.info = json.dumps({**existing_info, **method.decoded_parameters})
        payment.save(update_fields=['info'])

        redsys_order_done.send(sender=bridge.event, bridge=bridge, method=method)

    def on_order_success(self, bridge, method):
        super().on_order_success(bridge, method)
        payment = bridge.payment

        if payment.state in (OrderPayment.PAYMENT_STATE_CONFIRMED, OrderPayment.PAYMENT_STATE_REFUNDED):
            logger.info(f'Payment {payment.full_id} already confirmed')
        else:
            try:
                payment.confirm()
                logger.info(f'Payment {payment.full_id} confirmed via Redsys notification')
            except Quota.QuotaExceededException as e:
                # Money has been taken, the organizer has to sort out the quota by hand
                logger.warning(f'Payment {payment.full_id} paid but could not be confirmed: {e}')

        redsys_order_success.send(sender=bridge.event, bridge=bridge, method=method)

    def on_order_fail(self, bridge, method):
        super().on_order_fail(bridge, method)
        payment = bridge.payment

        if payment.state in (OrderPayment.PAYMENT_STATE_CONFIRMED, OrderPayment.PAYMENT_STATE_REFUNDED,
                             OrderPayment.PAYMENT_STATE_FAILED, OrderPayment.PAYMENT_STATE_CANCELED):
            logger.info(f'Ignoring failure for payment {payment.full_id} in state {payment.state}')
        else:
            payment.fail(info=method.decoded_parameters)
            logger.info(f'Payment {payment.full_id} failed via Redsys notification (Ds_Response={method.ds_response})')

        redsys_order_fail.send(sender=bridge.event, bridge=bridge, method=method)


class RedsysProvider(BasePaymentProvider):
    identifier = 'redsys'
    verbose_name = _('Credit card via Redsys')
    public_name = _('Credit card')
    abort_pending_allowed = True

    def get_setting(self, name):
        value = self.settings.get(name)
        if value is None or value == '':
            return DEFAULT_SETTINGS.get(name)
        return value

    @property
    def test_mode_message(self):
        if self.get_config().is_test:
            return _('The Redsys plugin is operating in test mode. No real payments will be processed.')
        return None

    @property
    def settings_form_fields(self):
        base_fields = super().settings_form_fields

        return OrderedDict(list(base_fields.items()) + [
            ('merchant_code', forms.CharField(
                label=_('Merchant code (FUC)'),
                help_text=_('Your Redsys merchant code'),
                required=True,
            )),
            ('terminal', forms.CharField(
                label=_('Terminal'),
                initial=DEFAULT_SETTINGS['terminal'],
                required=True,
            )),
            ('secret_key', SecretKeySettingsField(
                label=_('Secret key (SHA-256)'),
                help_text=_('Base64 encoded key shown in the Redsys administration module'),
                required=True,
            )),
            ('endpoint', forms.ChoiceField(
                label=_('Endpoint'),
                help_text=_('Choose between test and live environment'),
                choices=[(key, key.title()) for key in ENDPOINTS],
                initial=DEFAULT_SETTINGS['endpoint'],
            )),
            ('transaction_type', forms.ChoiceField(
                label=_('Transaction type'),
                choices=[
                    ('0', _('Authorisation')),
                    ('1', _('Pre-authorisation')),
                ],
                initial=DEFAULT_SETTINGS['transaction_type'],
            )),
            ('merchant_name', forms.CharField(
                label=_('Merchant name'),
                help_text=_('Shown to the buyer on the Redsys payment page'),
                max_length=MERCHANT_NAME_MAX_LENGTH,
                required=False,
            )),
        ])

    def get_config(self) -> RedsysConfig:
        return RedsysConfig(
            merchant_code=self.get_setting('merchant_code'),
            terminal=self.get_setting('terminal'),
            secret_key=self.get_setting('secret_key'),
            endpoint=self.get_setting('endpoint'),
        )

    def build_manager(self, payment: OrderPayment = None) -> RedsysManager:
        config = self.get_config()
        bridge = PretixPaymentBridge(self, payment)
        url_factory = PretixUrlFactory(self.event, payment)
        form_builder = RedsysFormBuilder(bridge, url_factory, config)
        return RedsysManager(form_builder, bridge, PretixEventDispatcher(), config)

    def _check_settings(self) -> bool:
        return all(self.get_setting(name) for name in ('merchant_code', 'terminal', 'secret_key'))

    def is_allowed(self, request: HttpRequest, total: Decimal = None) -> bool:
        if not super().is_allowed(request, total):
            return False
        if not self._check_settings():
            logger.debug(f'{self.identifier} is not configured for event {self.event.slug}')
            return False
        return self.event.currency in CURRENCY_CODES

    def payment_is_valid_session(self, request):
        return True

    def checkout_prepare(self, request, cart):
        return True

    def checkout_confirm_render(self, request, **kwargs) -> str:
        template = get_template('pretixplugins/redsys/checkout_payment_confirm.html')
        ctx = {
            'request': request,
            'event': self.event,
            'settings': self.settings,
            'provider': self,
        }
        return template.render(ctx)

    def execute_payment(self, request: HttpRequest, payment: OrderPayment):
        """Send the buyer to our redirect page, which posts the signed form to Redsys"""
        try:
            translate_currency(self.event.currency)
        except RedsysException as e:
            logger.error(f'Redsys payment {payment.full_id} rejected: {e}')
            raise PaymentException(_('This currency is not supported by Redsys.'))

        payment.state = OrderPayment.PAYMENT_STATE_PENDING
        payment.save(update_fields=['state'])

        return build_absolute_uri(
            self.event,
            'plugins:pretix_redsys:redirect',
            kwargs={
                'order': payment.order.code,
                'hash': payment.order.tagged_secret('plugins:pretix_redsys'),
                'payment': payment.pk,
            }
        )

    def payment_pending_render(self, request, payment: OrderPayment) -> str:
        template = get_template('pretixplugins/redsys/pending.html')
        ctx = {
            'request': request,
            'event': self.event,
            'payment': payment,
            'retry_url': build_absolute_uri(
                self.event,
                'plugins:pretix_redsys:redirect',
                kwargs={
                    'order': payment.order.code,
                    'hash': payment.order.tagged_secret('plugins:pretix_redsys'),
                    'payment': payment.pk,
                }
            ),
        }
        return template.render(ctx)

    def payment_control_render(self, request, payment: OrderPayment) -> str:
        template = get_template('pretixplugins/redsys/control.html')
        ctx = {
            'request': request,
            'event': self.event,
            'payment': payment,
            'payment_info': payment.info_data,
        }
        return template.render(ctx)

    def matching_id(self, payment: OrderPayment):
        return payment.info_data.get('Ds_Order') or payment.info_data.get('Ds_Merchant_Order')

    def api_payment_details(self, payment: OrderPayment):
        info = payment.info_data
        return {
            'order': info.get('Ds_Order') or info.get('Ds_Merchant_Order'),
            'response': info.get('Ds_Response'),
            'authorisation_code': info.get('Ds_AuthorisationCode'),
            'card_country': info.get('Ds_Card_Country'),
        }
