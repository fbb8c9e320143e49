"""Tests for acmekit.json_util."""
import datetime
import json
import sys
import unittest

import josepy as jose
import pytest

from acmekit import errors
from acmekit import messages
from acmekit._internal.tests import test_util


class JSONTest(unittest.TestCase):
    """Tests for acmekit.json_util.JSON."""

    def setUp(self):
        from acmekit.json_util import JSON
        self.json = JSON(test_util.load_json('genericChallenge.json'))

    def test_parse(self):
        from acmekit.json_util import JSON
        parsed = JSON.parse(test_util.load_vector('genericChallenge.json'))
        assert parsed == self.json

    def test_parse_malformed(self):
        from acmekit.json_util import JSON
        with pytest.raises(errors.ProtocolError):
            JSON.parse('{"type": ')

    def test_parse_not_an_object(self):
        from acmekit.json_util import JSON
        with pytest.raises(errors.ProtocolError):
            JSON.parse('[1, 2]')

    def test_empty(self):
        from acmekit.json_util import JSON
        empty = JSON.empty()
        assert not empty
        assert empty.keys() == []
        assert empty.json_dumps() == '{}'

    def test_contains_and_keys(self):
        assert 'type' in self.json
        assert 'token' not in self.json
        assert sorted(self.json) == sorted(self.json.keys())

    def test_copy_is_private(self):
        from acmekit.json_util import JSON
        data = {'contact': ['mailto:a@example.com']}
        json_obj = JSON(data)
        data['contact'].append('mailto:b@example.com')
        json_obj.to_dict()['contact'].append('mailto:c@example.com')
        assert json_obj.to_dict() == {'contact': ['mailto:a@example.com']}

    def test_json_dumps_is_canonical(self):
        from acmekit.json_util import JSON
        assert JSON({'b': 1, 'a': 2}).json_dumps() == JSON({'a': 2, 'b': 1}).json_dumps()

    def test_str_and_repr(self):
        assert str(self.json) == self.json.json_dumps()
        assert repr(self.json).startswith('JSON({')


class JSONValueTest(unittest.TestCase):
    """Tests for acmekit.json_util.JSONValue."""

    def setUp(self):
        from acmekit.json_util import JSON
        self.json = JSON({
            'string': 'foo',
            'url': 'https://example.com/acme',
            'uri': 'mailto:foo@example.com',
            'instant': '2015-12-12T17:19:36.336785823Z',
            'offset': '2016-01-01T01:00:00+01:00',
            'int': 42,
            'bool': True,
            'object': {'a': 'b'},
            'array': ['x', 'y'],
            'binary': jose.b64encode(b'\x00\x01abc').decode(),
            'status': 'ready',
            'futureStatus': 'frobnicated',
            'identifier': {'type': 'dns', 'value': 'example.org'},
            'badIdentifier': {'type': 'email', 'value': 'foo@example.org'},
            'problem': {'type': 'urn:ietf:params:acme:error:dns', 'detail': 'No TXT record'},
        })

    def test_missing_values_are_absent(self):
        missing = self.json.get('nope')
        assert not missing.is_present()
        assert missing.as_string() is None
        assert missing.as_url() is None
        assert missing.as_uri() is None
        assert missing.as_instant() is None
        assert missing.as_int() is None
        assert missing.as_bool() is None
        assert missing.as_object() is None
        assert missing.as_binary() is None
        assert missing.as_identifier() is None
        assert missing.as_problem() is None
        assert missing.as_array() == []
        assert missing.as_status() == messages.STATUS_UNKNOWN
        assert missing.as_status(messages.STATUS_PENDING) == messages.STATUS_PENDING

    def test_required(self):
        assert self.json.get('string').required().as_string() == 'foo'
        with pytest.raises(errors.ProtocolError, match="'nope'"):
            self.json.get('nope').required()

    def test_as_string(self):
        assert self.json.get('string').as_string() == 'foo'
        with pytest.raises(errors.ProtocolError, match="'int'"):
            self.json.get('int').as_string()

    def test_as_url(self):
        assert self.json.get('url').as_url() == 'https://example.com/acme'
        with pytest.raises(errors.ProtocolError):
            self.json.get('uri').as_url()
        with pytest.raises(errors.ProtocolError):
            self.json.get('string').as_url()

    def test_as_uri(self):
        assert self.json.get('uri').as_uri() == 'mailto:foo@example.com'
        with pytest.raises(errors.ProtocolError):
            self.json.get('string').as_uri()

    def test_as_instant(self):
        instant = self.json.get('instant').as_instant()
        assert instant.utcoffset() == datetime.timedelta(0)
        assert (instant.year, instant.month, instant.day) == (2015, 12, 12)
        assert (instant.hour, instant.minute, instant.second) == (17, 19, 36)
        assert instant.microsecond in (336785, 336786)

    def test_as_instant_offset(self):
        instant = self.json.get('offset').as_instant()
        assert instant == datetime.datetime(2016, 1, 1, tzinfo=datetime.timezone.utc)

    def test_as_instant_malformed(self):
        with pytest.raises(errors.ProtocolError, match="'string'"):
            self.json.get('string').as_instant()

    def test_as_int(self):
        assert self.json.get('int').as_int() == 42
        with pytest.raises(errors.ProtocolError):
            self.json.get('bool').as_int()

    def test_as_bool(self):
        assert self.json.get('bool').as_bool() is True
        with pytest.raises(errors.ProtocolError):
            self.json.get('int').as_bool()

    def test_as_object(self):
        obj = self.json.get('object').as_object()
        assert obj.get('a').as_string() == 'b'
        with pytest.raises(errors.ProtocolError):
            self.json.get('array').as_object()

    def test_as_array(self):
        values = self.json.get('array').as_array()
        assert [value.as_string() for value in values] == ['x', 'y']
        assert values[1].path == 'array[1]'
        with pytest.raises(errors.ProtocolError):
            self.json.get('object').as_array()

    def test_as_binary(self):
        assert self.json.get('binary').as_binary() == b'\x00\x01abc'

    def test_as_status(self):
        assert self.json.get('status').as_status() == messages.STATUS_READY
        assert self.json.get('futureStatus').as_status() == messages.STATUS_UNKNOWN

    def test_as_identifier(self):
        identifier = self.json.get('identifier').as_identifier()
        assert identifier == messages.Identifier.dns('example.org')
        with pytest.raises(errors.ProtocolError):
            self.json.get('badIdentifier').as_identifier()

    def test_as_problem(self):
        problem = self.json.get('problem').as_problem('https://example.com/acme')
        assert problem.code == 'dns'
        assert problem.detail == 'No TXT record'
        assert problem.base_url == 'https://example.com/acme'

    def test_equality(self):
        from acmekit.json_util import JSONValue
        assert self.json.get('string') == JSONValue('string', 'foo')
        assert self.json.get('string') != JSONValue('other', 'foo')


class JSONBuilderTest(unittest.TestCase):
    """Tests for acmekit.json_util.JSONBuilder."""

    def test_put(self):
        from acmekit.json_util import JSONBuilder
        builder = JSONBuilder()
        assert builder.put('foo', 'bar') is builder
        builder.put('status', messages.STATUS_DEACTIVATED)
        builder.put('identifier', messages.Identifier.dns('example.org'))
        assert builder.to_dict() == {
            'foo': 'bar',
            'status': 'deactivated',
            'identifier': {'type': 'dns', 'value': 'example.org'},
        }

    def test_put_instant(self):
        from acmekit.json_util import JSONBuilder
        when = datetime.datetime(2016, 1, 1, 1, 0, tzinfo=datetime.timezone(
            datetime.timedelta(hours=1)))
        builder = JSONBuilder().put('notBefore', when)
        assert builder.to_dict() == {'notBefore': '2016-01-01T00:00:00Z'}

    def test_put_naive_instant(self):
        from acmekit.json_util import JSONBuilder
        with pytest.raises(ValueError):
            JSONBuilder().put('notBefore', datetime.datetime(2016, 1, 1))

    def test_put_base64(self):
        from acmekit.json_util import JSONBuilder
        builder = JSONBuilder().put_base64('csr', b'\xff\xfe\x00')
        assert builder.to_dict() == {'csr': jose.b64encode(b'\xff\xfe\x00').decode()}
        assert '=' not in builder.to_dict()['csr']

    def test_put_key(self):
        from acmekit.json_util import JSONBuilder
        key = test_util.rsa_jwk()
        builder = JSONBuilder().put_key('jwk', key)
        assert builder.to_dict()['jwk'] == key.public_key().to_json()
        assert 'd' not in builder.to_dict()['jwk']

    def test_object_and_array(self):
        from acmekit.json_util import JSONBuilder
        builder = JSONBuilder()
        builder.object('sub').put('a', 1)
        builder.array('list', (x for x in ('p', 'q')))
        assert builder.to_dict() == {'sub': {'a': 1}, 'list': ['p', 'q']}

    def test_to_json_is_deterministic(self):
        from acmekit.json_util import JSONBuilder
        first = JSONBuilder().put('b', 1).put('a', [1, 2])
        second = JSONBuilder().put('a', [1, 2]).put('b', 1)
        assert first.to_json() == second.to_json()
        assert json.loads(first.to_json()) == {'a': [1, 2], 'b': 1}
        assert str(first) == first.to_json()


if __name__ == '__main__':
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
