"""ACME problem documents.

https://datatracker.ietf.org/doc/html/rfc7807

"""
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union
import urllib.parse

from acmekit import json_util
from acmekit import messages

ERROR_PREFIX = "urn:ietf:params:acme:error:"

ERROR_CODES = {
    'accountDoesNotExist': 'The request specified an account that does not exist',
    'alreadyRevoked': 'The request specified a certificate to be revoked that has' \
    ' already been revoked',
    'badCSR': 'The CSR is unacceptable (e.g., due to a short key)',
    'badNonce': 'The client sent an unacceptable anti-replay nonce',
    'badPublicKey': 'The JWS was signed by a public key the server does not support',
    'badRevocationReason': 'The revocation reason provided is not allowed by the server',
    'badSignatureAlgorithm': 'The JWS was signed with an algorithm the server does not support',
    'caa': 'Certification Authority Authorization (CAA) records forbid the CA from issuing' \
    ' a certificate',
    'compound': 'Specific error conditions are indicated in the "subproblems" array',
    'connection': ('The server could not connect to the client to verify the'
                   ' domain'),
    'dns': 'There was a problem with a DNS query during identifier validation',
    'dnssec': 'The server could not validate a DNSSEC signed domain',
    'incorrectResponse': 'Response received didn\'t match the challenge\'s requirements',
    'invalidContact': 'The provided contact URI was invalid',
    'malformed': 'The request message was malformed',
    'rejectedIdentifier': 'The server will not issue certificates for the identifier',
    'orderNotReady': 'The request attempted to finalize an order that is not ready to be finalized',
    'rateLimited': 'There were too many requests of a given type',
    'serverInternal': 'The server experienced an internal error',
    'tls': 'The server experienced a TLS error during domain verification',
    'unauthorized': 'The client lacks sufficient authorization',
    'unsupportedContact': 'A contact URL for an account used an unsupported protocol scheme',
    'unsupportedIdentifier': 'An identifier is of an unsupported type',
    'userActionRequired': 'Visit the "instance" URL and take actions specified there',
    'externalAccountRequired': 'The server requires external account binding',
}

ERROR_TYPE_DESCRIPTIONS = {
    ERROR_PREFIX + name: desc for name, desc in ERROR_CODES.items()
}


class Problem:
    """Problem document sent by the server.

    Immutable; two problems are equal when their JSON forms are equal.

    :ivar str base_url: URL of the request that produced the problem, used
        to resolve relative ``type`` and ``instance`` references.

    """
    __slots__ = ('_json', 'base_url')

    def __init__(self, json: Union[json_util.JSON, Mapping[str, Any]],
                 base_url: Optional[str] = None) -> None:
        if not isinstance(json, json_util.JSON):
            json = json_util.JSON(json)
        self._json = json
        self.base_url = base_url

    @classmethod
    def with_code(cls, code: str, **kwargs: Any) -> 'Problem':
        """Create a problem with an ACME error code.

        :param str code: An ACME error code, like ``'dnssec'``.
        :param kwargs: Other members of the problem document.

        :raises ValueError: if the code is not known.

        """
        if code not in ERROR_CODES:
            raise ValueError("The supplied code: %s is not a known ACME error"
                             " code" % code)
        return cls(dict(kwargs, type=ERROR_PREFIX + code))

    def _resolve(self, value: Optional[str]) -> Optional[str]:
        if value is None or self.base_url is None:
            return value
        return urllib.parse.urljoin(self.base_url, value)

    @property
    def typ(self) -> str:
        """Problem type URI, ``about:blank`` if the server sent none."""
        return self._resolve(self._json.get('type').as_string()) or 'about:blank'

    @property
    def title(self) -> Optional[str]:
        return self._json.get('title').as_string()

    @property
    def detail(self) -> Optional[str]:
        return self._json.get('detail').as_string()

    @property
    def instance(self) -> Optional[str]:
        return self._resolve(self._json.get('instance').as_string())

    @property
    def identifier(self) -> Optional[messages.Identifier]:
        return self._json.get('identifier').as_identifier()

    @property
    def subproblems(self) -> Tuple['Problem', ...]:
        return tuple(Problem(value.as_object(), self.base_url)  # type: ignore[arg-type]
                     for value in self._json.get('subproblems').as_array())

    @property
    def code(self) -> Optional[str]:
        """ACME error code, or ``None`` if not a standard ACME error."""
        typ = self.typ
        if not typ.startswith(ERROR_PREFIX):
            return None
        code = typ[len(ERROR_PREFIX):]
        if code in ERROR_CODES:
            return code
        return None

    @property
    def description(self) -> Optional[str]:
        """Hardcoded error description based on its type."""
        return ERROR_TYPE_DESCRIPTIONS.get(self.typ)

    def as_json(self) -> json_util.JSON:
        return self._json

    def to_dict(self) -> Dict[str, Any]:
        return self._json.to_dict()

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Problem) and other._json.json_dumps() == self._json.json_dumps()

    def __hash__(self) -> int:
        return hash(self._json.json_dumps())

    def _text(self, name: str) -> Optional[str]:
        # Fields of any JSON type, for display only
        value = self._json.get(name).value
        if value is None or isinstance(value, str):
            return value
        return repr(value)

    def __str__(self) -> str:
        typ = self._json.get('type').value
        typ = self._resolve(typ) if isinstance(typ, str) else self._text('type')
        typ = typ or 'about:blank'
        result = b' :: '.join(
            part.encode('ascii', 'backslashreplace') for part in
            (typ, ERROR_TYPE_DESCRIPTIONS.get(typ), self._text('detail'), self._text('title'))
            if part is not None).decode()
        identifier = self._json.get('identifier').value
        if isinstance(identifier, dict) and identifier.get('value'):
            result = f'Problem for {identifier["value"]}: ' + result
        subproblems = self._json.get('subproblems').value
        if not isinstance(subproblems, list):
            subproblems = []
        subproblems = [Problem(value, self.base_url)
                       for value in subproblems if isinstance(value, dict)]
        if subproblems:
            result += '\n' + '\n'.join(str(subproblem) for subproblem in subproblems)
        return result

    def __repr__(self) -> str:
        return 'Problem({0})'.format(self._json.json_dumps())


def is_acme_error(problem: Optional[Problem]) -> bool:
    """Check if argument is a standard ACME problem."""
    return problem is not None and problem.typ.startswith(ERROR_PREFIX)
