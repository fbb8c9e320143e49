"""ACME protocol constants and small message objects."""
from collections.abc import Hashable
import enum
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Union

import josepy as jose

from acmekit import util


class _Constant(jose.JSONDeSerializable, Hashable):
    """ACME constant."""
    __slots__ = ('name',)
    POSSIBLE_NAMES: Dict[str, '_Constant'] = NotImplemented

    def __init__(self, name: str) -> None:
        super().__init__()
        self.POSSIBLE_NAMES[name] = self  # pylint: disable=unsupported-assignment-operation
        self.name = name

    def to_partial_json(self) -> str:
        return self.name

    @classmethod
    def from_json(cls, jobj: str) -> '_Constant':
        if jobj not in cls.POSSIBLE_NAMES:  # pylint: disable=unsupported-membership-test
            raise jose.DeserializationError(f'{cls.__name__} not recognized')
        return cls.POSSIBLE_NAMES[jobj]

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.name})'

    def __str__(self) -> str:
        return self.name

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, type(self)) and other.name == self.name

    def __hash__(self) -> int:
        return hash((self.__class__, self.name))


class Status(_Constant):
    """ACME "status" field."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}

    @classmethod
    def parse(cls, name: str) -> 'Status':
        """Like `from_json`, but unrecognized names give `STATUS_UNKNOWN`."""
        return cls.POSSIBLE_NAMES.get(name, STATUS_UNKNOWN)  # type: ignore[return-value]


STATUS_UNKNOWN = Status('unknown')
STATUS_PENDING = Status('pending')
STATUS_PROCESSING = Status('processing')
STATUS_VALID = Status('valid')
STATUS_INVALID = Status('invalid')
STATUS_REVOKED = Status('revoked')
STATUS_READY = Status('ready')
STATUS_DEACTIVATED = Status('deactivated')
STATUS_EXPIRED = Status('expired')
STATUS_CANCELED = Status('canceled')


class IdentifierType(_Constant):
    """ACME identifier type."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


IDENTIFIER_FQDN = IdentifierType('dns')
IDENTIFIER_IP = IdentifierType('ip')


class Identifier(jose.JSONObjectWithFields):
    """ACME identifier.

    :ivar IdentifierType typ:
    :ivar str value:

    """
    typ: IdentifierType = jose.field('type', decoder=IdentifierType.from_json)
    value: str = jose.field('value')

    @classmethod
    def dns(cls, domain: str) -> 'Identifier':
        """Identifier for a domain name."""
        return cls(typ=IDENTIFIER_FQDN, value=domain)

    @classmethod
    def ip(cls, address: str) -> 'Identifier':
        """Identifier for an IP address."""
        return cls(typ=IDENTIFIER_IP, value=address)


class ResourceType(_Constant):
    """Name of an endpoint listed in the server directory."""
    POSSIBLE_NAMES: Dict[str, _Constant] = {}


NEW_NONCE = ResourceType('newNonce')
NEW_ACCOUNT = ResourceType('newAccount')
NEW_ORDER = ResourceType('newOrder')
NEW_AUTHZ = ResourceType('newAuthz')
REVOKE_CERT = ResourceType('revokeCert')
KEY_CHANGE = ResourceType('keyChange')


class Directory(jose.JSONDeSerializable):
    """Directory."""

    class Meta(jose.JSONObjectWithFields):
        """Directory Meta."""
        terms_of_service: str = jose.field('termsOfService', omitempty=True)
        website: str = jose.field('website', omitempty=True)
        caa_identities: List[str] = jose.field('caaIdentities', omitempty=True)
        external_account_required: bool = jose.field('externalAccountRequired', omitempty=True)

    @classmethod
    def _canon_key(cls, key: Union[str, ResourceType]) -> str:
        if isinstance(key, str):
            return key
        return key.name

    def __init__(self, jobj: Mapping[str, Any]) -> None:
        self._jobj = util.map_keys(jobj, self._canon_key)

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError as error:
            raise AttributeError(str(error))

    def __getitem__(self, name: Union[str, ResourceType]) -> Any:
        try:
            return self._jobj[self._canon_key(name)]
        except KeyError:
            raise KeyError('Directory field "' + self._canon_key(name) + '" not found')

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, (str, ResourceType)):
            return False
        return self._canon_key(name) in self._jobj

    def __iter__(self) -> Iterator[str]:
        return iter(self._jobj)

    def to_partial_json(self) -> Dict[str, Any]:
        return self._jobj

    @classmethod
    def from_json(cls, jobj: Mapping[str, Any]) -> 'Directory':
        jobj = dict(jobj)
        jobj['meta'] = cls.Meta.from_json(jobj.pop('meta', {}))
        return cls(jobj)


class RevocationReason(enum.IntEnum):
    """Certificate revocation reason codes (RFC 5280, section 5.3.1)."""
    UNSPECIFIED = 0
    KEY_COMPROMISE = 1
    CA_COMPROMISE = 2
    AFFILIATION_CHANGED = 3
    SUPERSEDED = 4
    CESSATION_OF_OPERATION = 5
    CERTIFICATE_HOLD = 6
    REMOVE_FROM_CRL = 8
    PRIVILEGE_WITHDRAWN = 9
    AA_COMPROMISE = 10

    @classmethod
    def from_code(cls, code: int) -> 'RevocationReason':
        """Reason for a numeric code.

        :raises ValueError: if the code is not a known reason.

        """
        try:
            return cls(code)
        except ValueError:
            raise ValueError(f'Unknown revocation reason code: {code!r}')
