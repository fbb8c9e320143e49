"""Tests for acmekit.jws."""
import json
import sys
import unittest

import josepy as jose
import pytest

from acmekit._internal.tests import test_util


class HeaderTest(unittest.TestCase):
    """Tests for acmekit.jws.Header."""

    good_nonce = jose.encode_b64jose(b'foo')
    wrong_nonce = 'F'
    # Following just makes sure wrong_nonce is wrong
    try:
        jose.b64decode(wrong_nonce)
    except (ValueError, TypeError):
        assert True
    else:
        pytest.fail("Exception from jose.b64decode wasn't raised")  # pragma: no cover

    def test_nonce_decoder(self):
        from acmekit.jws import Header
        nonce_field = Header._fields['nonce']

        with pytest.raises(jose.DeserializationError):
            nonce_field.decode(self.wrong_nonce)
        assert b'foo' == nonce_field.decode(self.good_nonce)


class JWSTest(unittest.TestCase):
    """Tests for acmekit.jws.JWS."""

    def setUp(self):
        self.privkey = test_util.rsa_jwk()
        self.pubkey = self.privkey.public_key()
        self.nonce = jose.b64encode(b'Nonce')
        self.url = 'https://acme.test/acme/new-order'
        self.kid = test_util.ACCOUNT_URL

    def test_kid_serialize(self):
        from acmekit.jws import JWS
        jws = JWS.sign(payload=b'foo', key=self.privkey,
                       alg=jose.RS256, nonce=self.nonce,
                       url=self.url, kid=self.kid)
        assert jws.signature.combined.nonce == self.nonce
        assert jws.signature.combined.url == self.url
        assert jws.signature.combined.kid == self.kid
        assert jws.signature.combined.jwk is None
        assert jws.signature.header.nonce is None

        assert jws == JWS.from_json(jws.to_json())

    def test_jwk_serialize(self):
        from acmekit.jws import JWS
        jws = JWS.sign(payload=b'foo', key=self.privkey,
                       alg=jose.RS256, nonce=self.nonce,
                       url=self.url)
        assert jws.signature.combined.kid is None
        assert jws.signature.combined.jwk == self.pubkey


class SignatureAlgorithmTest(unittest.TestCase):
    """Tests for acmekit.jws.signature_algorithm."""

    @classmethod
    def _call(cls, key):
        from acmekit.jws import signature_algorithm
        return signature_algorithm(key)

    def test_rsa(self):
        assert self._call(test_util.rsa_jwk()) is jose.RS256

    def test_ec(self):
        assert self._call(test_util.ec_jwk('secp256r1')) is jose.ES256
        assert self._call(test_util.ec_jwk('secp384r1')) is jose.ES384
        assert self._call(test_util.ec_jwk('secp521r1')) is jose.ES512

    def test_unsupported(self):
        with pytest.raises(ValueError):
            self._call(jose.JWKOct(key=b'secret'))


class SignRequestTest(unittest.TestCase):
    """Tests for acmekit.jws.sign_request."""

    def test_kid(self):
        from acmekit.jws import JWS, sign_request
        key = test_util.ec_jwk()
        data = sign_request(b'{"foo": "bar"}', key, b'nonce', 'https://acme.test/x',
                            kid=test_util.ACCOUNT_URL)
        jobj = json.loads(data)
        assert set(jobj) == {'protected', 'payload', 'signature'}
        jws = JWS.json_loads(data)
        assert jws.verify(key.public_key())
        protected = jws.signature.combined
        assert protected.alg == jose.ES256
        assert protected.nonce == b'nonce'
        assert protected.url == 'https://acme.test/x'
        assert protected.kid == test_util.ACCOUNT_URL
        assert protected.jwk is None
        assert jws.payload == b'{"foo": "bar"}'

    def test_jwk(self):
        from acmekit.jws import JWS, sign_request
        key = test_util.rsa_jwk()
        jws = JWS.json_loads(sign_request(b'', key, b'nonce', 'https://acme.test/x'))
        assert jws.signature.combined.kid is None
        assert jws.signature.combined.jwk == key.public_key()
        assert jws.payload == b''


class KeyAuthorizationTest(unittest.TestCase):
    """Tests for acmekit.jws.key_authorization."""

    def test_key_authorization(self):
        from acmekit.jws import key_authorization
        key = test_util.rsa_jwk()
        token, thumbprint = key_authorization('IlirfxKKXAsHtmzK29Pj8A', key).split('.')
        assert token == 'IlirfxKKXAsHtmzK29Pj8A'
        assert jose.b64decode(thumbprint) == key.thumbprint()
        assert '=' not in thumbprint


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
