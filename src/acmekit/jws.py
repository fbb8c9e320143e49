"""ACME-specific JWS.

The JWS implementation in josepy only implements the base JOSE standard. In
order to support the new header fields defined in ACME, this module defines some
ACME-specific classes that layer on top of josepy.
"""
import logging
from typing import Optional

from cryptography.hazmat.primitives import hashes
import josepy as jose

logger = logging.getLogger(__name__)

_EC_ALGORITHMS = {
    256: jose.ES256,
    384: jose.ES384,
    521: jose.ES512,
}


class Header(jose.Header):
    """ACME-specific JOSE Header. Implements nonce, kid, and url.
    """
    nonce: Optional[bytes] = jose.field('nonce', omitempty=True, encoder=jose.encode_b64jose)
    kid: Optional[str] = jose.field('kid', omitempty=True)  # type: ignore[assignment]
    url: Optional[str] = jose.field('url', omitempty=True)

    # Mypy does not understand the josepy magic happening here, and falsely claims
    # that nonce is redefined. Let's ignore the type check here.
    @nonce.decoder  # type: ignore[no-redef,attr-defined,union-attr]
    def nonce(value: str) -> bytes:  # type: ignore[misc]  # pylint: disable=no-self-argument,missing-function-docstring
        try:
            return jose.decode_b64jose(value)
        except jose.DeserializationError as error:
            raise jose.DeserializationError("Invalid nonce: {0}".format(error))


class Signature(jose.Signature):
    """ACME-specific Signature. Uses ACME-specific Header for customer fields."""
    __slots__ = jose.Signature._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access,no-member

    header_cls = Header
    header: Header = jose.field(
        'header', omitempty=True, default=header_cls(),
        decoder=header_cls.from_json)


class JWS(jose.JWS):
    """ACME-specific JWS. Includes nonce, url, and kid in protected header."""
    signature_cls = Signature
    __slots__ = jose.JWS._orig_slots  # type: ignore[attr-defined]  # pylint: disable=protected-access

    @classmethod
    # type: ignore[override]  # pylint: disable=arguments-differ
    def sign(cls, payload: bytes, key: jose.JWK, alg: jose.JWASignature, nonce: Optional[bytes],
             url: Optional[str] = None, kid: Optional[str] = None) -> jose.JWS:
        # jwk and kid are mutually exclusive, so only include a jwk field if
        # kid is not provided.
        include_jwk = kid is None
        return super().sign(payload, key=key, alg=alg,
                            protect=frozenset(['nonce', 'url', 'kid', 'jwk', 'alg']),
                            nonce=nonce, url=url, kid=kid,
                            include_jwk=include_jwk)


def signature_algorithm(key: jose.JWK) -> jose.JWASignature:
    """Pick the signature algorithm for an account key.

    RSA keys sign with ``RS256``; EC keys with ``ES256``, ``ES384`` or
    ``ES512`` depending on the curve.

    :raises ValueError: for any other key type.

    """
    if isinstance(key, jose.JWKRSA):
        return jose.RS256
    if isinstance(key, jose.JWKEC):
        size = key.key.curve.key_size
        if size in _EC_ALGORITHMS:
            return _EC_ALGORITHMS[size]
        raise ValueError(f'Unsupported elliptic curve: {key.key.curve.name}')
    raise ValueError(f'Unsupported key type: {type(key).__name__}')


def sign_request(payload: bytes, key: jose.JWK, nonce: bytes, url: str,
                 kid: Optional[str] = None) -> str:
    """Wrap a request payload in a flattened JWS.

    :param bytes payload: Serialized claims, ``b''`` for POST-as-GET.
    :param JWK key: Private key to sign with.
    :param bytes nonce: Decoded replay nonce.
    :param str url: Target URL of the request.
    :param str kid: Account URL. The public key is embedded instead if
        this is ``None``.

    :returns: JSON serialization of the JWS.
    :rtype: str

    """
    logger.debug('JWS payload:\n%s', payload)
    return JWS.sign(payload, key=key, alg=signature_algorithm(key), nonce=nonce,
                    url=url, kid=kid).json_dumps(indent=2)


def key_authorization(token: str, key: jose.JWK) -> str:
    """Key authorization of a challenge token.

    :param str token: Challenge token, as sent by the server.
    :param JWK key: Account key.
    :rtype: str

    """
    return token + "." + jose.b64encode(
        key.thumbprint(hash_function=hashes.SHA256)).decode()
