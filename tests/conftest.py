import importlib.util
import os

import pytest

from pretix_redsys import encrypter
from pretix_redsys.bridge import PaymentBridge, PaymentEventDispatcher, UrlFactory
from pretix_redsys.config import RedsysConfig
from pretix_redsys.exceptions import OrderNotFound
from pretix_redsys.signature import RedsysSignature

# Public key of the Redsys integration (sis-t) environment
TEST_SECRET_KEY = 'sq7HjrUOBfKmC576ILgskD5srU870gJ7'

if importlib.util.find_spec('pretix') is None:
    collect_ignore = ['test_payment.py']
else:
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'pretix.testutils.settings')
    import django
    django.setup()


class FakeBridge(PaymentBridge):
    def __init__(self, order_id=42, amount='10.00', currency='EUR', extra_data=None, order='order-42'):
        self.order_id = order_id
        self.amount = amount
        self.currency = currency
        self.extra_data = extra_data if extra_data is not None else {}
        self.order = order
        self.known_orders = {order_id: order}
        self.lookups = []

    def get_order(self):
        return self.order

    def find_order(self, order_id):
        self.lookups.append(order_id)
        if order_id not in self.known_orders:
            raise OrderNotFound(f'Order {order_id} not found')
        self.order = self.known_orders[order_id]
        return self.order

    def get_order_id(self):
        return self.order_id

    def get_amount(self):
        return self.amount

    def get_currency(self):
        return self.currency

    def get_extra_data(self):
        return self.extra_data


class FakeUrlFactory(UrlFactory):
    def get_merchant_url(self):
        return 'https://tickets.example.com/org/event/redsys/notify/'

    def get_url_ok(self, order_id):
        return f'https://tickets.example.com/org/event/redsys/return/{order_id}/ok/'

    def get_url_ko(self, order_id):
        return f'https://tickets.example.com/org/event/redsys/return/{order_id}/ko/'


class RecordingDispatcher(PaymentEventDispatcher):
    def __init__(self):
        self.events = []

    def on_order_load(self, bridge, method):
        self.events.append('load')

    def on_order_created(self, bridge, method):
        self.events.append('created')

    def on_order_done(self, bridge, method):
        self.events.append('done')

    def on_order_success(self, bridge, method):
        self.events.append('success')

    def on_order_fail(self, bridge, method):
        self.events.append('fail')


def make_notification(secret_key=TEST_SECRET_KEY, ds_order='0042T9876543', ds_response='0000', **extra):
    """Envelope as Redsys posts it: URL-safe signature over the result parameters"""
    decoded = {
        'Ds_Date': '19%2F10%2F2026',
        'Ds_Hour': '18%3A42',
        'Ds_SecurePayment': '1',
        'Ds_Amount': '1000',
        'Ds_Currency': '978',
        'Ds_Order': ds_order,
        'Ds_MerchantCode': '999008881',
        'Ds_Terminal': '1',
        'Ds_Response': ds_response,
        'Ds_TransactionType': '0',
        'Ds_MerchantData': 'ABC12',
        'Ds_AuthorisationCode': '123456',
        'Ds_Card_Country': '724',
    }
    decoded.update(extra)
    return {
        'Ds_SignatureVersion': 'HMAC_SHA256_V1',
        'Ds_MerchantParameters': encrypter.encode(decoded),
        'Ds_Signature': RedsysSignature.for_result(decoded, secret_key).denormalized(),
    }


@pytest.fixture
def config():
    return RedsysConfig(merchant_code='999008881', terminal='1', secret_key=TEST_SECRET_KEY)


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def url_factory():
    return FakeUrlFactory()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
