import pytest

from conftest import TEST_SECRET_KEY, FakeBridge
from pretix_redsys import encrypter
from pretix_redsys.config import ENDPOINTS, RedsysConfig
from pretix_redsys.exceptions import MissingParameters, UnsupportedCurrency
from pretix_redsys.form import (
    RedsysFormBuilder, check_required_parameters, format_order_number, translate_currency,
)
from pretix_redsys.manager import parse_order_id
from pretix_redsys.signature import RedsysSignature


@pytest.fixture
def builder(bridge, url_factory, config):
    return RedsysFormBuilder(bridge, url_factory, config)


def test_format_order_number_pads_and_suffixes():
    assert format_order_number('7', timestamp=1234567890) == '0007T0987654'
    assert format_order_number(42, timestamp=1760000000) == '0042T0000000'


def test_format_order_number_without_timestamp():
    number = format_order_number(7)
    assert len(number) == 12
    assert number.startswith('0007T')


def test_format_order_number_long_ids_are_truncated():
    assert format_order_number('123456789012345', timestamp=1234567890) == '123456789012'
    assert len(format_order_number('12345678', timestamp=1234567890)) == 12


@pytest.mark.parametrize('order_id', [1, 7, 42, 9999, 123456])
def test_parse_order_id_recovers_formatted_id(order_id):
    assert parse_order_id(format_order_number(order_id, timestamp=1760912345)) == order_id


def test_translate_currency():
    assert translate_currency('EUR') == '978'
    assert translate_currency('USD') == '840'
    assert translate_currency('ARS') == '032'
    assert RedsysFormBuilder.translate_currency('GBP') == '826'


def test_translate_currency_unsupported():
    with pytest.raises(UnsupportedCurrency) as excinfo:
        translate_currency('XXX')
    assert 'XXX' in str(excinfo.value)


def test_build_parameters(builder):
    parameters = builder.build_parameters()

    assert list(parameters) == [
        'Ds_Merchant_TransactionType',
        'Ds_Merchant_MerchantURL',
        'Ds_Merchant_UrlOK',
        'Ds_Merchant_UrlKO',
        'Ds_Merchant_Amount',
        'Ds_Merchant_Order',
        'Ds_Merchant_MerchantCode',
        'Ds_Merchant_Currency',
        'Ds_Merchant_Terminal',
    ]
    assert parameters['Ds_Merchant_TransactionType'] == 0
    assert parameters['Ds_Merchant_Amount'] == '10.00'
    assert parameters['Ds_Merchant_Currency'] == '978'
    assert parameters['Ds_Merchant_MerchantCode'] == '999008881'
    assert parameters['Ds_Merchant_Terminal'] == '1'
    assert parameters['Ds_Merchant_UrlOK'].endswith('/42/ok/')
    assert parameters['Ds_Merchant_UrlKO'].endswith('/42/ko/')
    assert parse_order_id(parameters['Ds_Merchant_Order']) == 42


def test_build_parameters_with_extra_data(url_factory, config):
    bridge = FakeBridge(amount=2550, extra_data={
        'transaction_type': '0',
        'product_description': 'Tickets for Demo Conference',
        'merchant_titular': 'Ana Pérez',
        'merchant_data': 'ABC12',
    })
    parameters = RedsysFormBuilder(bridge, url_factory, config).build_parameters()

    assert parameters['Ds_Merchant_TransactionType'] == '0'
    assert parameters['Ds_Merchant_Amount'] == '2550'
    assert parameters['Ds_Merchant_ProductDescription'] == 'Tickets for Demo Conference'
    assert parameters['Ds_Merchant_Titular'] == 'Ana Pérez'
    assert parameters['Ds_Merchant_MerchantData'] == 'ABC12'
    assert 'Ds_Merchant_MerchantName' not in parameters


def test_build_parameters_unsupported_currency(url_factory, config):
    builder = RedsysFormBuilder(FakeBridge(currency='XXX'), url_factory, config)
    with pytest.raises(UnsupportedCurrency):
        builder.build_parameters()


def test_build_parameters_without_merchant_code(bridge, url_factory):
    config = RedsysConfig(merchant_code='', terminal='1', secret_key=TEST_SECRET_KEY)
    with pytest.raises(MissingParameters) as excinfo:
        RedsysFormBuilder(bridge, url_factory, config).build_parameters()
    assert excinfo.value.missing == ['Ds_Merchant_MerchantCode']


def test_check_required_parameters_lists_every_missing_field():
    with pytest.raises(MissingParameters) as excinfo:
        check_required_parameters({'Ds_Merchant_Amount': '1000', 'Ds_Merchant_Terminal': None})
    assert 'Ds_Merchant_Terminal' in excinfo.value.missing
    assert 'Ds_Merchant_MerchantCode' in excinfo.value.missing
    assert 'Ds_Merchant_Amount' not in excinfo.value.missing


def test_build(builder):
    fields = builder.build()

    assert list(fields) == ['Ds_SignatureVersion', 'Ds_MerchantParameters', 'Ds_Signature']
    assert fields['Ds_SignatureVersion'] == 'HMAC_SHA256_V1'

    sent = encrypter.decode(fields['Ds_MerchantParameters'])
    assert sent['Ds_Merchant_Amount'] == '10.00'
    assert RedsysSignature.for_request(sent, TEST_SECRET_KEY).matches(fields['Ds_Signature'])


def test_build_signature_is_standard_alphabet(builder):
    signature = builder.build()['Ds_Signature']
    assert '-' not in signature
    assert '_' not in signature


def test_build_form(builder):
    form = builder.build_form()
    assert form.action == ENDPOINTS['test']
    assert form.method == 'POST'
    assert set(form.fields) == {'Ds_SignatureVersion', 'Ds_MerchantParameters', 'Ds_Signature'}


def test_build_form_live_endpoint(bridge, url_factory):
    config = RedsysConfig(merchant_code='999008881', terminal='1', secret_key=TEST_SECRET_KEY, endpoint='live')
    form = RedsysFormBuilder(bridge, url_factory, config).build_form()
    assert form.action == 'https://sis.redsys.es/sis/realizarPago'
    assert not config.is_test
