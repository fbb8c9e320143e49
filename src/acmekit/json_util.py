"""JSON values with typed accessors.

ACME bodies are read through `JSON` and `JSONValue`: a missing field
yields ``None`` (or an empty list, or a default status), while a field that
is present but cannot be converted raises `.ProtocolError` naming the field.
Request bodies are built with `JSONBuilder`.

"""
import copy
import datetime
import json
import typing
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional
from typing import Union
import urllib.parse

import josepy as jose
import pyrfc3339

from acmekit import errors
from acmekit import messages

if typing.TYPE_CHECKING:
    from acmekit import problem  # pragma: no cover


class JSON:
    """Read-only JSON object.

    :ivar dict _data: Private copy of the decoded object.

    """
    __slots__ = ('_data',)

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(dict(data)) if data else {}

    @classmethod
    def parse(cls, text: Union[str, bytes]) -> 'JSON':
        """Parse a JSON object from its text form.

        :raises .ProtocolError: if the text is not a JSON object.

        """
        try:
            data = json.loads(text)
        except ValueError as error:
            raise errors.ProtocolError('Malformed JSON: {0}'.format(error))
        if not isinstance(data, dict):
            raise errors.ProtocolError('JSON object expected, got {0}'.format(
                type(data).__name__))
        return cls(data)

    @classmethod
    def empty(cls) -> 'JSON':
        """An empty JSON object."""
        return cls()

    def get(self, name: str) -> 'JSONValue':
        """Get the value of a field, present or not."""
        return JSONValue(name, self._data.get(name))

    def keys(self) -> List[str]:
        return list(self._data)

    def to_dict(self) -> Dict[str, Any]:
        """Deep copy of the object as plain Python data."""
        return copy.deepcopy(self._data)

    def json_dumps(self) -> str:
        """Canonical text form (sorted keys)."""
        return json.dumps(self._data, sort_keys=True)

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, JSON) and other._data == self._data

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return 'JSON({0})'.format(self.json_dumps())

    def __str__(self) -> str:
        return self.json_dumps()


class JSONValue:
    """Value of one field of a `JSON` object.

    :ivar str path: Field name, used in error messages.
    :ivar value: Raw decoded value, ``None`` if the field is missing.

    """
    __slots__ = ('path', 'value')

    def __init__(self, path: str, value: Any) -> None:
        self.path = path
        self.value = value

    def is_present(self) -> bool:
        return self.value is not None

    def required(self) -> 'JSONValue':
        """Return this value, or fail if the field is missing.

        :raises .ProtocolError: if the field is missing.

        """
        if self.value is None:
            raise errors.ProtocolError('Required field {0!r} is missing'.format(self.path))
        return self

    def _fail(self, expected: str, error: Optional[Exception] = None) -> errors.ProtocolError:
        message = 'Field {0!r} is not {1}: {2!r}'.format(self.path, expected, self.value)
        if error is not None:
            message += ' ({0})'.format(error)
        return errors.ProtocolError(message)

    def as_string(self) -> Optional[str]:
        if self.value is None:
            return None
        if not isinstance(self.value, str):
            raise self._fail('a string')
        return self.value

    def as_uri(self) -> Optional[str]:
        """URI with a scheme, e.g. ``urn:ietf:params:acme:error:dns``."""
        value = self.as_string()
        if value is None:
            return None
        if not urllib.parse.urlsplit(value).scheme:
            raise self._fail('a URI')
        return value

    def as_url(self) -> Optional[str]:
        """Absolute ``http`` or ``https`` URL."""
        value = self.as_string()
        if value is None:
            return None
        parts = urllib.parse.urlsplit(value)
        if parts.scheme not in ('http', 'https') or not parts.netloc:
            raise self._fail('an absolute URL')
        return value

    def as_instant(self) -> Optional[datetime.datetime]:
        """RFC 3339 timestamp as an aware `datetime.datetime`."""
        value = self.as_string()
        if value is None:
            return None
        try:
            return pyrfc3339.parse(value)
        except ValueError as error:
            raise self._fail('a timestamp', error)

    def as_int(self) -> Optional[int]:
        if self.value is None:
            return None
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise self._fail('an integer')
        return self.value

    def as_bool(self) -> Optional[bool]:
        if self.value is None:
            return None
        if not isinstance(self.value, bool):
            raise self._fail('a boolean')
        return self.value

    def as_object(self) -> Optional[JSON]:
        if self.value is None:
            return None
        if not isinstance(self.value, dict):
            raise self._fail('an object')
        return JSON(self.value)

    def as_array(self) -> List['JSONValue']:
        """Array elements; an empty list if the field is missing."""
        if self.value is None:
            return []
        if not isinstance(self.value, list):
            raise self._fail('an array')
        return [JSONValue('{0}[{1}]'.format(self.path, idx), item)
                for idx, item in enumerate(self.value)]

    def as_binary(self) -> Optional[bytes]:
        """Base64url encoded bytes."""
        value = self.as_string()
        if value is None:
            return None
        try:
            return jose.b64decode(value)
        except (ValueError, TypeError) as error:
            raise self._fail('base64url data', error)

    def as_status(self, default: messages.Status = messages.STATUS_UNKNOWN) -> messages.Status:
        """Status constant; unrecognized names map to ``unknown``."""
        value = self.as_string()
        if value is None:
            return default
        return messages.Status.parse(value)

    def as_identifier(self) -> Optional[messages.Identifier]:
        obj = self.as_object()
        if obj is None:
            return None
        try:
            return messages.Identifier.from_json(obj.to_dict())
        except jose.DeserializationError as error:
            raise self._fail('an identifier', error)

    def as_problem(self, base_url: Optional[str] = None) -> Optional['problem.Problem']:
        from acmekit.problem import Problem  # pylint: disable=import-outside-toplevel
        obj = self.as_object()
        if obj is None:
            return None
        return Problem(obj, base_url)

    def __eq__(self, other: Any) -> bool:
        return (isinstance(other, JSONValue) and other.path == self.path
                and other.value == self.value)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return 'JSONValue({0!r}, {1!r})'.format(self.path, self.value)


class JSONBuilder:
    """Builder for JSON request bodies.

    Values are converted when added: `datetime.datetime` to RFC 3339,
    josepy serializable objects and `JSON` to their JSON form.

    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def put(self, name: str, value: Any) -> 'JSONBuilder':
        self._data[name] = _encode(value)
        return self

    def put_base64(self, name: str, data: bytes) -> 'JSONBuilder':
        """Put bytes as unpadded base64url text."""
        return self.put(name, jose.b64encode(data).decode('ascii'))

    def put_key(self, name: str, key: jose.JWK) -> 'JSONBuilder':
        """Put the public part of a key as a JWK object."""
        return self.put(name, key.public_key().to_json())

    def object(self, name: str) -> 'JSONBuilder':
        """Start a nested object and return its builder."""
        sub = JSONBuilder()
        self._data[name] = sub
        return sub

    def array(self, name: str, values: Any) -> 'JSONBuilder':
        return self.put(name, list(values))

    def to_dict(self) -> Dict[str, Any]:
        return {name: value.to_dict() if isinstance(value, JSONBuilder) else copy.deepcopy(value)
                for name, value in self._data.items()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    def __str__(self) -> str:
        return self.to_json()

    def __repr__(self) -> str:
        return 'JSONBuilder({0})'.format(self.to_json())


def _encode(value: Any) -> Any:
    if isinstance(value, JSONBuilder):
        return value.to_dict()
    if isinstance(value, JSON):
        return value.to_dict()
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            raise ValueError('Naive datetime cannot be encoded: {0!r}'.format(value))
        return pyrfc3339.generate(value, utc=True)
    if isinstance(value, jose.JSONDeSerializable):
        return value.to_json()
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {name: _encode(item) for name, item in value.items()}
    return value
