"""Tests for acmekit.messages."""
import sys
import unittest

import josepy as jose
import pytest

from acmekit._internal.tests import test_util


class ConstantTest(unittest.TestCase):
    """Tests for acmekit.messages._Constant."""

    def setUp(self):
        from acmekit.messages import _Constant

        class MockConstant(_Constant):  # pylint: disable=missing-docstring
            POSSIBLE_NAMES: dict = {}

        self.MockConstant = MockConstant  # pylint: disable=invalid-name
        self.const_a = MockConstant('a')
        self.const_b = MockConstant('b')

    def test_to_partial_json(self):
        assert 'a' == self.const_a.to_partial_json()
        assert 'b' == self.const_b.to_partial_json()

    def test_from_json(self):
        assert self.const_a == self.MockConstant.from_json('a')
        with pytest.raises(jose.DeserializationError):
            self.MockConstant.from_json('c')

    def test_from_json_hashable(self):
        hash(self.MockConstant.from_json('a'))

    def test_repr_and_str(self):
        assert 'MockConstant(a)' == repr(self.MockConstant('a'))
        assert 'b' == str(self.MockConstant('b'))

    def test_equality(self):
        const_a_prime = self.MockConstant('a')
        assert self.const_a != self.const_b
        assert self.const_a == const_a_prime

        assert self.const_a != self.const_b
        assert self.const_a == const_a_prime


class StatusTest(unittest.TestCase):
    """Tests for acmekit.messages.Status."""

    def test_parse_known(self):
        from acmekit import messages
        assert messages.Status.parse('ready') is messages.STATUS_READY
        assert messages.Status.parse('canceled') is messages.STATUS_CANCELED

    def test_parse_unknown(self):
        from acmekit import messages
        assert messages.Status.parse('frobnicated') is messages.STATUS_UNKNOWN

    def test_from_json_unknown(self):
        from acmekit import messages
        with pytest.raises(jose.DeserializationError):
            messages.Status.from_json('frobnicated')


class IdentifierTest(unittest.TestCase):
    """Tests for acmekit.messages.Identifier."""

    def test_dns(self):
        from acmekit import messages
        identifier = messages.Identifier.dns('example.org')
        assert identifier.to_json() == {'type': 'dns', 'value': 'example.org'}

    def test_ip(self):
        from acmekit import messages
        identifier = messages.Identifier.ip('192.0.2.1')
        assert identifier.typ == messages.IDENTIFIER_IP
        assert identifier.to_json() == {'type': 'ip', 'value': '192.0.2.1'}

    def test_from_json(self):
        from acmekit import messages
        identifier = messages.Identifier.from_json({'type': 'dns', 'value': 'example.org'})
        assert identifier == messages.Identifier.dns('example.org')


class DirectoryTest(unittest.TestCase):
    """Tests for acmekit.messages.Directory."""

    def setUp(self):
        from acmekit.messages import Directory
        self.dir = Directory.from_json(test_util.load_json('directory.json'))

    def test_init_wrong_key_value_success(self):  # pylint: disable=no-self-use
        from acmekit.messages import Directory
        Directory({'foo': 'bar'})

    def test_getitem(self):
        from acmekit import messages
        assert 'https://acme.test/acme/new-order' == self.dir['newOrder']
        assert 'https://acme.test/acme/new-order' == self.dir[messages.NEW_ORDER]

    def test_getitem_fails_with_key_error(self):
        with pytest.raises(KeyError):
            self.dir.__getitem__('foo')

    def test_getattr(self):
        assert 'https://acme.test/acme/key-change' == self.dir.keyChange

    def test_getattr_fails_with_attribute_error(self):
        with pytest.raises(AttributeError):
            self.dir.__getattr__('foo')

    def test_contains(self):
        from acmekit import messages
        assert messages.NEW_NONCE in self.dir
        assert 'revokeCert' in self.dir
        assert messages.NEW_AUTHZ not in self.dir
        assert 42 not in self.dir

    def test_meta(self):
        meta = self.dir.meta
        assert meta.terms_of_service == 'https://acme.test/acme/terms/2017-5-30'
        assert meta.website == 'https://www.acme.test/'
        assert list(meta.caa_identities) == ['acme.test']
        assert meta.external_account_required is False

    def test_meta_missing(self):
        from acmekit.messages import Directory
        directory = Directory.from_json({'newNonce': 'https://acme.test/new-nonce'})
        assert directory.meta.terms_of_service is None

    def test_from_json_does_not_modify_input(self):
        from acmekit.messages import Directory
        jobj = test_util.load_json('directory.json')
        Directory.from_json(jobj)
        assert isinstance(jobj['meta'], dict)


class RevocationReasonTest(unittest.TestCase):
    """Tests for acmekit.messages.RevocationReason."""

    def test_from_code(self):
        from acmekit.messages import RevocationReason
        assert RevocationReason.from_code(1) is RevocationReason.KEY_COMPROMISE
        assert RevocationReason.from_code(10) is RevocationReason.AA_COMPROMISE
        assert int(RevocationReason.SUPERSEDED) == 4

    def test_from_code_unknown(self):
        from acmekit.messages import RevocationReason
        for code in (7, 11, -1):
            with pytest.raises(ValueError, match='Unknown revocation reason'):
                RevocationReason.from_code(code)


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
