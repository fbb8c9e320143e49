"""ACME Identifier Validation Challenges."""
import datetime
import hashlib
import logging
import typing
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Type
from typing import Union

import josepy as jose

from acmekit import errors
from acmekit import json_util
from acmekit import jws
from acmekit import messages
from acmekit import problem
from acmekit import resources

if typing.TYPE_CHECKING:
    from acmekit import session as session_mod  # pragma: no cover

logger = logging.getLogger(__name__)


class Challenge(resources.JSONResource):
    """ACME challenge.

    The base class accepts a body of any type. Registered variants only
    accept bodies of their own `typ`.

    :cvar str typ: Challenge type of the variant, ``None`` for the base class.

    """
    typ: Optional[str] = None
    TYPES: Dict[str, Type['Challenge']] = {}

    @classmethod
    def register(cls, challenge_cls: Type['Challenge']) -> Type['Challenge']:
        """Register a challenge variant for its `typ`."""
        cls.TYPES[challenge_cls.typ] = challenge_cls  # type: ignore[index]
        return challenge_cls

    @classmethod
    def from_json(cls, session: 'session_mod.Session',
                  json: Union[json_util.JSON, Mapping[str, Any]]) -> 'Challenge':
        """Create the challenge variant registered for the body's type.

        Unrecognized types give a plain `Challenge`.

        :raises ValueError: if the body has no type.

        """
        if not isinstance(json, json_util.JSON):
            json = json_util.JSON(json)
        return cls._class_for(json)(session, json=json)

    @classmethod
    def _class_for(cls, json: json_util.JSON) -> Type['Challenge']:
        typ = json.get('type').as_string()
        if typ is None:
            raise ValueError('Not a challenge: body has no type')
        if cls.typ is not None:
            return cls
        if typ not in cls.TYPES:
            logger.debug('Unrecognized challenge type: %s', typ)
        return cls.TYPES.get(typ, cls)

    @classmethod
    def _create(cls, session: 'session_mod.Session', location: str,
                json: json_util.JSON) -> 'Challenge':
        # Challenge.bind() gives the variant registered for the body's type
        return cls._class_for(json)(session, location, json)

    @property
    def type(self) -> Optional[str]:
        """Challenge type as sent by the server."""
        return self.json.get('type').as_string() or self.typ

    @property
    def validated(self) -> Optional[datetime.datetime]:
        """Time the server validated the challenge, ``None`` if not yet."""
        return self.json.get('validated').as_instant()

    @property
    def error(self) -> Optional[problem.Problem]:
        """Reason of the failure, only for an invalid challenge."""
        if self.status != messages.STATUS_INVALID:
            return None
        return self.json.get('error').as_problem(self.location)

    def _check(self, json: json_util.JSON) -> None:
        typ = json.get('type').as_string()
        if typ is None:
            raise ValueError('Not a challenge: body has no type')
        if self.typ is not None and typ != self.typ:
            raise errors.ProtocolError(
                'Illegal challenge type {0!r}, expected {1!r}'.format(typ, self.typ))

    def unmarshall(self, json: Union[json_util.JSON, Mapping[str, Any]]) -> None:
        if not isinstance(json, json_util.JSON):
            json = json_util.JSON(json)
        url = None
        if self.location is None:
            # ACMEv1 has a "uri" field in challenges, ACMEv2 has "url"
            url = json.get('url').as_url() or json.get('uri').as_url()
        super().unmarshall(json)
        if url is not None:
            self._bind_location(url)

    def respond(self, builder: json_util.JSONBuilder) -> None:
        """Write the claims sent by `trigger`."""
        builder.put('type', self.type)

    def trigger(self) -> None:
        """Ask the server to validate the challenge.

        A ``Retry-After`` hint is stored in `retry_after`; poll with
        `update` to learn the result.

        """
        claims = json_util.JSONBuilder()
        self.respond(claims)
        logger.debug('Triggering %r', self)
        with self.session.connect() as conn:
            conn.send_signed_request(self._require_location(), claims)
            conn.accept(200, 202)
            self._load(conn)


class TokenChallenge(Challenge):
    """Challenge proven with a key authorization of its token."""

    @property
    def token(self) -> str:
        """Token sent by the server.

        :raises .ProtocolError: if the body has no token.

        """
        return self.json.get('token').required().as_string()  # type: ignore[return-value]

    @property
    def good_token(self) -> bool:
        """Is `token` safe to use in a file name or URL path?"""
        token = self.token
        return '..' not in token and '/' not in token

    @property
    def authorization(self) -> str:
        """Key authorization for the session's account key.

        :raises .Error: if the session has no key.

        """
        if self.session.key is None:
            raise errors.Error('Key authorization requires the account key')
        return jws.key_authorization(self.token, self.session.key)

    def respond(self, builder: json_util.JSONBuilder) -> None:
        super().respond(builder)
        builder.put('keyAuthorization', self.authorization)


@Challenge.register
class HTTP01(TokenChallenge):
    """ACME http-01 challenge."""
    typ = "http-01"

    URI_ROOT_PATH = ".well-known/acme-challenge"
    """URI root path for the server provisioned resource."""

    @property
    def path(self) -> str:
        """Path (starting with '/') for provisioned resource.

        :rtype: str

        """
        return '/' + self.URI_ROOT_PATH + '/' + self.token

    def uri(self, domain: str) -> str:
        """Create an URI to the provisioned resource.

        :param str domain: Domain name being verified.
        :rtype: str

        """
        return "http://" + domain + self.path


@Challenge.register
class DNS01(TokenChallenge):
    """ACME dns-01 challenge."""
    typ = "dns-01"

    LABEL = "_acme-challenge"
    """Label clients prepend to the domain name being validated."""

    @property
    def digest(self) -> str:
        """Content of the TXT validation record.

        :rtype: str

        """
        return jose.b64encode(hashlib.sha256(
            self.authorization.encode("utf-8")).digest()).decode()

    def validation_domain_name(self, name: str) -> str:
        """Domain name for TXT validation record.

        :param str name: Domain name being validated.
        :rtype: str

        """
        return f"{self.LABEL}.{name}"


@Challenge.register
class TLSALPN01(TokenChallenge):
    """ACME tls-alpn-01 challenge."""
    typ = "tls-alpn-01"

    ACME_TLS_1_PROTOCOL = b"acme-tls/1"
    """ALPN protocol the validation server negotiates."""

    @property
    def acme_validation(self) -> bytes:
        """SHA-256 digest of the key authorization.

        Value of the ``acmeIdentifier`` extension of the validation
        certificate.

        """
        return hashlib.sha256(self.authorization.encode("utf-8")).digest()
