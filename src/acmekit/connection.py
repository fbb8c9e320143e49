"""One HTTP exchange with an ACME server."""
import base64
import datetime
from email.utils import parsedate_tz
import logging
import re
import typing
from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Union
import urllib.parse

from cryptography import x509
import josepy as jose
import requests
from requests.utils import parse_header_links

from acmekit import crypto_util
from acmekit import errors
from acmekit import json_util
from acmekit import jws
from acmekit import problem as problem_mod

if typing.TYPE_CHECKING:
    from acmekit import session as session_mod  # pragma: no cover

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = 'application/json'
JOSE_CONTENT_TYPE = 'application/jose+json'
JSON_ERROR_CONTENT_TYPE = 'application/problem+json'
PEM_CHAIN_CONTENT_TYPE = 'application/pem-certificate-chain'
REPLAY_NONCE_HEADER = 'Replay-Nonce'
RETRY_AFTER_HEADER = 'Retry-After'

Claims = Union[json_util.JSONBuilder, Mapping[str, Any], None]


# Helper function that can be mocked in unit tests
def _now() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


def parse_retry_after(value: str) -> datetime.datetime:
    """Compute the retry instant from a ``Retry-After`` header value.

    Handles delta-seconds and the HTTP date formats
    (https://www.rfc-editor.org/rfc/rfc9110#name-retry-after).

    :returns: Aware UTC instant.
    :rtype: `datetime.datetime`

    :raises .ProtocolError: if the value cannot be parsed.

    """
    value = value.strip()
    try:
        seconds = int(value)
    except ValueError:
        # The RFC 2822 parser handles all of the HTTP date formats
        when = parsedate_tz(value)
        if when is None:
            raise errors.ProtocolError(f'Invalid Retry-After header: {value!r}')
        try:
            tz_secs = datetime.timedelta(seconds=when[-1] if when[-1] is not None else 0)
            return datetime.datetime(*when[:6], tzinfo=datetime.timezone.utc) - tz_secs
        except (ValueError, OverflowError) as error:
            raise errors.ProtocolError(f'Invalid Retry-After header: {value!r} ({error})')
    if seconds < 0:
        raise errors.ProtocolError(f'Invalid Retry-After header: {value!r}')
    return _now() + datetime.timedelta(seconds=seconds)


class Connection:
    """Wrapper around one `requests` exchange that signs POSTs.

    Each ``send_*`` call replaces the held response. Use as a context
    manager, or call `close`, to release it.

    :ivar .Session session: Session the exchange belongs to.

    """

    def __init__(self, session: 'session_mod.Session') -> None:
        if session is None:
            raise TypeError('session must not be None')
        self.session = session
        self._response: Optional[requests.Response] = None
        self._url: Optional[str] = None
        self._retry_after: Optional[datetime.datetime] = None

    def __enter__(self) -> 'Connection':
        return self

    def __exit__(self, *unused_args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the held response."""
        if self._response is not None:
            self._response.close()
        self._response = None

    @property
    def response(self) -> requests.Response:
        """The held response.

        :raises .Error: if no request was sent yet.

        """
        if self._response is None:
            raise errors.Error('No request was sent on this connection')
        return self._response

    def _headers(self, accept: Optional[str]) -> Dict[str, str]:
        headers = {'User-Agent': self.session.user_agent}
        if accept is not None:
            headers['Accept'] = accept
        if self.session.locale is not None:
            headers['Accept-Language'] = self.session.locale
        return headers

    def _send_request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send HTTP request.

        Makes sure that the session's TLS verification and timeout are
        respected. Logs request and response (with headers).

        :raises requests.exceptions.RequestException: in case of any problems

        """
        if method == "POST":
            logger.debug('Sending POST request to %s:\n%s',
                         url, kwargs['data'])
        else:
            logger.debug('Sending %s request to %s.', method, url)
        self.close()
        kwargs['verify'] = self.session.verify_ssl
        kwargs.setdefault('timeout', self.session.timeout)
        try:
            response = self.session.http.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            # pylint: disable=pointless-string-statement
            """Requests response parsing

            The requests library emits exceptions with a lot of extra text.
            We parse them with a regexp to raise a more readable exceptions.

            Example:
            HTTPSConnectionPool(host='acme-v02.api.letsencrypt.org',
            port=443): Max retries exceeded with url: /directory
            (Caused by NewConnectionError('
            <urllib3.connection.HTTPSConnection
            object at 0x108356c50>: Failed to establish a new connection:
            [Errno 65] No route to host',))"""

            # pylint: disable=line-too-long
            err_regex = r".*host='(\S*)'.*Max retries exceeded with url\: (\/\w*).*(\[Errno \d+\])([A-Za-z ]*)"
            m = re.match(err_regex, str(e))
            if m is None:
                raise  # pragma: no cover
            host, path, _err_no, err_msg = m.groups()
            raise ValueError(f"Requesting {host}{path}:{err_msg}")

        response_ct = _content_type(response)
        debug_content: Union[bytes, str]
        if response_ct in (JSON_CONTENT_TYPE, JSON_ERROR_CONTENT_TYPE, PEM_CHAIN_CONTENT_TYPE):
            # We set response.encoding so response.text knows the response is
            # UTF-8 encoded instead of trying to guess the encoding.
            response.encoding = "utf-8"
            debug_content = response.text
        else:
            # Keep binary data out of the logs.
            debug_content = base64.b64encode(response.content)
        logger.debug('Received response:\nHTTP %d\n%s\n\n%s',
                     response.status_code,
                     "\n".join("{0}: {1}".format(k, v)
                               for k, v in response.headers.items()),
                     debug_content)
        self._response = response
        self._url = url
        self._retry_after = None
        return response

    def _offer_nonce(self, response: requests.Response, required: bool = False) -> None:
        if REPLAY_NONCE_HEADER in response.headers:
            self.session.offer_nonce(response.headers[REPLAY_NONCE_HEADER])
        elif required:
            raise errors.MissingNonce(response.headers)

    def send_request(self, url: str, accept: str = JSON_CONTENT_TYPE) -> int:
        """Send an unsigned GET request.

        :returns: HTTP status code; use `accept` to check it.

        """
        response = self._send_request('GET', url, headers=self._headers(accept))
        self._offer_nonce(response)
        return response.status_code

    def fetch_nonce(self, url: str) -> bytes:
        """Get a fresh nonce from the ``newNonce`` endpoint.

        The nonce is returned directly and does not enter the pool.

        :returns: Decoded nonce.
        :rtype: bytes

        """
        response = self._send_request('HEAD', url, headers=self._headers(None))
        self.accept(200, 204)
        if REPLAY_NONCE_HEADER not in response.headers:
            raise errors.MissingNonce(response.headers)
        return decode_nonce(response.headers[REPLAY_NONCE_HEADER])

    def send_signed_request(self, url: str, claims: Claims, *, key: Optional[jose.JWK] = None,
                            use_kid: bool = True, accept: str = JSON_CONTENT_TYPE) -> int:
        """POST claims wrapped in `.JWS`.

        If the server responded with a badNonce error, the request will
        be retried once.

        :param str url: Target URL.
        :param claims: `.JSONBuilder` or mapping, ``None`` for POST-as-GET.
        :param JWK key: Key to sign with, defaults to the session key.
        :param bool use_kid: Identify the account by its URL. If ``False``,
            or if the session has no account URL yet, the public key is
            embedded instead.

        :returns: HTTP status code; use `accept` to check it.

        """
        status = self._post_once(url, claims, key, use_kid, accept)
        if status >= 400:
            problem = self._read_problem()
            if problem is not None and problem.code == 'badNonce':
                logger.debug('Retrying request after error:\n%s', problem)
                status = self._post_once(url, claims, key, use_kid, accept)
        return status

    def send_signed_post_as_get(self, url: str, accept: str = JSON_CONTENT_TYPE) -> int:
        """Signed request with an empty payload, for authenticated reads."""
        return self.send_signed_request(url, None, accept=accept)

    def _post_once(self, url: str, claims: Claims, key: Optional[jose.JWK],
                   use_kid: bool, accept: str) -> int:
        key = key if key is not None else self.session.key
        if key is None:
            raise errors.Error('No key available to sign the request')
        kid = self.session.kid if use_kid else None
        payload = _serialize_claims(claims)
        data = jws.sign_request(payload, key, self.session.take_nonce(), url, kid)
        headers = self._headers(accept)
        headers['Content-Type'] = JOSE_CONTENT_TYPE
        response = self._send_request('POST', url, data=data, headers=headers)
        self._offer_nonce(response, required=response.ok)
        return response.status_code

    def accept(self, *status_codes: int) -> int:
        """Check the status code of the held response.

        :returns: The status code, if it is one of ``status_codes``.

        :raises .ServerError: with the `.Problem` sent by the server.

        """
        response = self.response
        if response.status_code in status_codes:
            return response.status_code
        raise self._server_error()

    def _read_problem(self) -> Optional[problem_mod.Problem]:
        response = self.response
        response_ct = _content_type(response)
        try:
            jobj = json_util.JSON.parse(response.content)
        except errors.ProtocolError:
            return None
        if not any(isinstance(jobj.get(name).value, str) for name in ('type', 'detail')):
            logger.debug('Error body is not a problem document: %s', jobj)
            return None
        if response_ct != JSON_ERROR_CONTENT_TYPE:
            logger.debug('Ignoring wrong Content-Type (%r) for JSON Error', response_ct)
        return problem_mod.Problem(jobj, self._url)

    def _server_error(self) -> errors.ServerError:
        response = self.response
        problem = self._read_problem()
        if problem is None:
            return errors.ServerError(
                None, response.status_code,
                'HTTP {0} {1}'.format(response.status_code, response.reason))
        code = problem.code
        if code == 'rateLimited':
            retry_after = None
            if RETRY_AFTER_HEADER in response.headers:
                try:
                    retry_after = parse_retry_after(response.headers[RETRY_AFTER_HEADER])
                except errors.ProtocolError as error:
                    logger.debug('Ignoring rate limit hint: %s', error)
            return errors.RateLimited(problem, response.status_code, retry_after)
        if code == 'unauthorized':
            return errors.Unauthorized(problem, response.status_code)
        if code == 'userActionRequired':
            tos = self.links('terms-of-service')
            return errors.UserActionRequired(problem, response.status_code,
                                             tos[0] if tos else None)
        return errors.ServerError(problem, response.status_code)

    def read_json_response(self) -> json_util.JSON:
        """Body of the held response as a JSON object.

        .. note::
           Checking is not strict: wrong server response ``Content-Type``
           HTTP header is ignored if response is a JSON object.

        :raises .ProtocolError: if the body is empty or malformed.

        """
        response = self.response
        if not response.content:
            raise errors.ProtocolError('Empty response body from {0}'.format(self._url))
        response_ct = _content_type(response)
        if response_ct != JSON_CONTENT_TYPE:
            logger.debug('Ignoring wrong Content-Type (%r) for JSON decodable '
                         'response', response_ct)
        return json_util.JSON.parse(response.content)

    def read_certificates(self) -> List[x509.Certificate]:
        """Body of the held response as a certificate chain, leaf first.

        :raises .ProtocolError: if there is no certificate or one is malformed.

        """
        response = self.response
        response_ct = _content_type(response)
        if response_ct != PEM_CHAIN_CONTENT_TYPE:
            logger.debug('Ignoring wrong Content-Type (%r) for certificate chain',
                         response_ct)
        return crypto_util.load_pem_chain(response.content)

    def handle_retry_after(self, message: str) -> None:
        """Raise `.RetryAfter` if the held response has a ``Retry-After`` header.

        :param str message: Message of the raised exception.

        :raises .RetryAfter: if the header is present.
        :raises .ProtocolError: if the header is present but malformed.

        """
        retry_after = self.retry_after()
        if retry_after is not None:
            raise errors.RetryAfter(message, retry_after)

    def retry_after(self) -> Optional[datetime.datetime]:
        """Instant advised by the ``Retry-After`` header, if any.

        The header is parsed once per response, so repeated calls give the
        same instant.

        """
        value = self.response.headers.get(RETRY_AFTER_HEADER)
        if value is None:
            return None
        if self._retry_after is None:
            self._retry_after = parse_retry_after(value)
        return self._retry_after

    def location(self) -> Optional[str]:
        """``Location`` header, resolved against the request URL."""
        location = self.response.headers.get('Location')
        if location is None:
            return None
        return urllib.parse.urljoin(self._url or '', location)

    def links(self, relation: str) -> List[str]:
        """All ``Link`` URLs of the given relation type.

        :param str relation: The relation type to filter by.

        """
        # Can't use response.links directly because it drops multiple links
        # of the same relation type, which is possible in RFC8555 responses.
        headers = self.response.headers
        if 'Link' not in headers:
            return []
        links = parse_header_links(headers['Link'])
        return [urllib.parse.urljoin(self._url or '', l['url']) for l in links
                if 'rel' in l and 'url' in l and l['rel'] == relation]

    def nonce(self) -> Optional[str]:
        """``Replay-Nonce`` header of the held response, if any."""
        return self.response.headers.get(REPLAY_NONCE_HEADER)


def decode_nonce(nonce: str) -> bytes:
    """Decode a ``Replay-Nonce`` value.

    :raises .BadNonce: if the value is not base64url.

    """
    try:
        return jws.Header._fields['nonce'].decode(nonce)  # pylint: disable=protected-access
    except jose.DeserializationError as error:
        raise errors.BadNonce(nonce, error)


def _content_type(response: requests.Response) -> Optional[str]:
    response_ct = response.headers.get('Content-Type')
    # Strip parameters from the media-type (rfc2616#section-3.7)
    if response_ct:
        response_ct = response_ct.split(';')[0].strip()
    return response_ct


def _serialize_claims(claims: Claims) -> bytes:
    if claims is None:
        return b''
    if not isinstance(claims, json_util.JSONBuilder):
        builder = json_util.JSONBuilder()
        for name, value in claims.items():
            builder.put(name, value)
        claims = builder
    return claims.to_json().encode()
