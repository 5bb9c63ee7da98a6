import hmac

from . import encrypter
from .config import REQUEST_ORDER_KEY, RESULT_ORDER_KEY
from .exceptions import MalformedPayload


class RedsysSignature:
    """
    HMAC_SHA256_V1 signature of a Redsys parameter set.

    The per-order key is derived from the value under the order index key
    (``Ds_Merchant_Order`` when we sign a request, ``Ds_Order`` when we verify a
    notification) and the whole mapping is canonicalized and signed with it.
    The value is held in the standard base64 alphabet; URL-safe text is only
    translated at the comparison boundary.
    """

    __slots__ = ('_signature',)

    def __init__(self, parameters: dict, secret_key: str, order_index: str):
        if order_index not in parameters:
            raise MalformedPayload(f'Parameter {order_index} is required to sign')

        key = encrypter.derive_key(parameters[order_index], secret_key)
        object.__setattr__(self, '_signature', encrypter.mac(encrypter.encode(parameters), key))

    @classmethod
    def for_request(cls, parameters: dict, secret_key: str) -> 'RedsysSignature':
        return cls(parameters, secret_key, REQUEST_ORDER_KEY)

    @classmethod
    def for_result(cls, parameters: dict, secret_key: str) -> 'RedsysSignature':
        return cls(parameters, secret_key, RESULT_ORDER_KEY)

    def normalized(self) -> str:
        return self._signature

    as_normalized_text = normalized

    def denormalized(self) -> str:
        return encrypter.denormalize(self._signature)

    def matches(self, signature: str) -> bool:
        """Compare against received signature text in either alphabet, in constant time"""
        if not isinstance(signature, str):
            return False
        try:
            return hmac.compare_digest(self._signature, encrypter.normalize(signature.strip()))
        except TypeError:
            # compare_digest refuses non-ASCII str
            return False

    def __setattr__(self, name, value):
        raise AttributeError('RedsysSignature is immutable')

    def __eq__(self, other):
        if isinstance(other, RedsysSignature):
            return hmac.compare_digest(self._signature, other._signature)
        return NotImplemented

    def __hash__(self):
        return hash(self._signature)

    def __str__(self):
        return self._signature

    def __repr__(self):
        return f'<RedsysSignature {self._signature}>'
