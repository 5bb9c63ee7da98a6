import base64
import binascii
import hashlib
import hmac
import json

from Crypto.Cipher import DES3

from .exceptions import InvalidKeyMaterial, MalformedPayload

_TO_STANDARD = str.maketrans('-_', '+/')
_TO_URLSAFE = str.maketrans('+/', '-_')


def normalize(value: str) -> str:
    """Translate URL-safe base64 text (``-_``) into the standard alphabet (``+/``)"""
    return value.translate(_TO_STANDARD)


def denormalize(value: str) -> str:
    """Translate standard base64 text (``+/``) into the URL-safe alphabet (``-_``)"""
    return value.translate(_TO_URLSAFE)


def to_json(params: dict) -> str:
    """
    Serialize parameters exactly as Redsys' reference integration does: compact,
    non-ASCII characters as \\uXXXX escapes and forward slashes escaped as \\/.
    Insertion order is kept.
    """
    return json.dumps(params, separators=(',', ':'), ensure_ascii=True).replace('/', '\\/')


def encode(params: dict) -> str:
    """Canonical payload: standard base64 of the JSON serialization of the whole mapping"""
    return base64.b64encode(to_json(params).encode('utf-8')).decode('ascii')


def decode(value: str) -> dict:
    """
    Decode a Ds_MerchantParameters blob back into its parameter mapping.

    Accepts both base64 alphabets and tolerates stripped ``=`` padding.

    Raises:
        MalformedPayload: the blob is not base64, not UTF-8 JSON, or not a JSON object
    """
    if not isinstance(value, str):
        raise MalformedPayload('Merchant parameters must be a string')

    normalized = normalize(value.strip())
    normalized += '=' * (-len(normalized) % 4)

    try:
        raw = base64.b64decode(normalized, validate=True)
        params = json.loads(raw.decode('utf-8'))
    except (binascii.Error, ValueError, RecursionError) as e:
        raise MalformedPayload(f'Could not decode merchant parameters: {e}') from e

    if not isinstance(params, dict):
        raise MalformedPayload('Merchant parameters are not a JSON object')
    return params


def derive_key(order_value, secret_key: str) -> bytes:
    """
    Derive the per-order signing key.

    The order value is right padded with NUL bytes up to the Triple-DES block size
    and encrypted with the base64 decoded merchant secret (3DES-CBC, zero IV, no
    cipher padding). The ciphertext is the key; it is never decrypted, so the NUL
    padding is not removed anywhere.

    Raises:
        InvalidKeyMaterial: the secret is not base64 or not a usable Triple-DES key
    """
    try:
        key = base64.b64decode(secret_key, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidKeyMaterial('Secret key is not valid base64') from e

    message = str(order_value).encode('utf-8')
    remainder = len(message) % DES3.block_size
    if remainder:
        message = message.ljust(len(message) + DES3.block_size - remainder, b'\0')

    try:
        cipher = DES3.new(key, DES3.MODE_CBC, iv=bytes(DES3.block_size))
    except ValueError as e:
        raise InvalidKeyMaterial(f'Secret key is not a valid Triple-DES key ({len(key)} bytes)') from e

    return cipher.encrypt(message)


def mac(payload: str, key: bytes) -> str:
    """Base64 (standard alphabet) of the raw HMAC-SHA256 of ``payload`` under ``key``"""
    digest = hmac.new(key, payload.encode('utf-8'), hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')
