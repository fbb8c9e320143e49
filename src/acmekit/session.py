"""ACME session: server directory, account key and nonce pool."""
import logging
import threading
from typing import Any
from typing import Optional
from typing import Set
from typing import Union
import urllib.parse

import josepy as jose
import requests
from requests.adapters import HTTPAdapter

from acmekit import account as account_mod
from acmekit import connection
from acmekit import errors
from acmekit import messages
from acmekit import util

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_TIMEOUT = 45

DEFAULT_USER_AGENT = 'acmekit-python'

PROVIDERS = {
    ('letsencrypt.org', ''): 'https://acme-v02.api.letsencrypt.org/directory',
    ('letsencrypt.org', '/v02'): 'https://acme-v02.api.letsencrypt.org/directory',
    ('letsencrypt.org', '/staging'): 'https://acme-staging-v02.api.letsencrypt.org/directory',
    ('pebble', ''): 'https://localhost:14000/dir',
}
"""Directory URLs of the ``acme://`` provider URIs, by host and path."""


def resolve_directory_url(server_url: str) -> str:
    """Directory URL of a server URL or ``acme://`` provider URI.

    :raises TypeError: if ``server_url`` is ``None``.
    :raises ValueError: if it is neither an absolute ``http``/``https``
        URL nor a known provider URI.

    """
    if server_url is None:
        raise TypeError('server_url must not be None')
    parts = urllib.parse.urlsplit(server_url)
    if parts.scheme == 'acme':
        key = (parts.netloc, parts.path.rstrip('/'))
        if key not in PROVIDERS:
            raise ValueError(f'Unknown ACME provider: {server_url!r}')
        return PROVIDERS[key]
    return util.check_url(server_url, 'server_url')


class NoncePool:
    """Replay nonces received from the server.

    Every nonce is handed out at most once.

    """

    def __init__(self) -> None:
        self._nonces: Set[bytes] = set()
        self._lock = threading.Lock()

    def take(self) -> Optional[bytes]:
        """Remove and return one decoded nonce, ``None`` if the pool is empty."""
        with self._lock:
            if not self._nonces:
                return None
            return self._nonces.pop()

    def offer(self, nonce: str) -> None:
        """Add a ``Replay-Nonce`` header value.

        :raises .BadNonce: if the value is not base64url.

        """
        decoded_nonce = connection.decode_nonce(nonce)
        logger.debug('Storing nonce: %s', nonce)
        with self._lock:
            self._nonces.add(decoded_nonce)

    def __len__(self) -> int:
        with self._lock:
            return len(self._nonces)


class Session:
    """Client state shared by all requests to one ACME server.

    :ivar str server_url: URL or provider URI the session was created with.
    :ivar str directory_url: Resolved URL of the directory.
    :ivar josepy.JWK key: Account private key. Required for signed
        requests; may be set later.
    :ivar str kid: Account URL. Sent instead of the public key once known.
    :ivar str locale: Value of the ``Accept-Language`` header, if any.
    :ivar bool verify_ssl: Whether to verify certificates on SSL connections.
    :ivar str user_agent: String to send as User-Agent header.
    :ivar int timeout: Timeout for requests.
    :ivar NoncePool nonces:
    :ivar requests.Session http:

    """

    def __init__(self, server_url: str, key: Optional[jose.JWK] = None, *,
                 kid: Optional[str] = None, locale: Optional[str] = None,
                 verify_ssl: bool = True, user_agent: str = DEFAULT_USER_AGENT,
                 timeout: int = DEFAULT_NETWORK_TIMEOUT) -> None:
        self.directory_url = resolve_directory_url(server_url)
        self.server_url = server_url
        self.key = key
        self.kid = kid
        self.locale = locale
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent
        self.timeout = timeout
        self.nonces = NoncePool()
        self._directory: Optional[messages.Directory] = None
        self.http = requests.Session()
        adapter = HTTPAdapter()

        self.http.mount("http://", adapter)
        self.http.mount("https://", adapter)

    def __enter__(self) -> 'Session':
        return self

    def __exit__(self, *unused_args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the HTTP session."""
        self.http.close()

    def connect(self) -> connection.Connection:
        """New `.Connection` for one exchange with the server."""
        return connection.Connection(self)

    @property
    def directory(self) -> messages.Directory:
        """Server directory, fetched on first access."""
        if self._directory is None:
            logger.debug('Fetching directory from %s', self.directory_url)
            with self.connect() as conn:
                conn.send_request(self.directory_url)
                try:
                    conn.accept(200)
                except errors.ServerError as error:
                    raise errors.ProtocolError(
                        f'Cannot fetch directory from {self.directory_url}: {error}') from error
                jobj = conn.read_json_response().to_dict()
            try:
                self._directory = messages.Directory.from_json(jobj)
            except jose.DeserializationError as error:
                raise errors.ProtocolError(f'Malformed directory: {error}')
        return self._directory

    @property
    def meta(self) -> messages.Directory.Meta:
        """Directory metadata."""
        return self.directory.meta

    def resource_url(self, resource_type: Union[str, messages.ResourceType]) -> str:
        """URL of a directory resource.

        :raises .ProtocolError: if the directory does not offer the resource.

        """
        directory = self.directory
        if resource_type not in directory:
            raise errors.ProtocolError(
                f'Server does not offer the {resource_type} resource')
        url = directory[resource_type]
        if not isinstance(url, str):
            raise errors.ProtocolError(
                f'Directory entry {resource_type} is not a URL: {url!r}')
        return url

    def take_nonce(self) -> bytes:
        """Take a nonce from the pool, fetching a fresh one if it is empty."""
        nonce = self.nonces.take()
        if nonce is not None:
            return nonce
        logger.debug('Requesting fresh nonce')
        with self.connect() as conn:
            return conn.fetch_nonce(self.resource_url(messages.NEW_NONCE))

    def offer_nonce(self, nonce: str) -> None:
        self.nonces.offer(nonce)

    def login(self, account_url: str, key: Optional[jose.JWK] = None) -> 'account_mod.Account':
        """Use an existing account.

        No request is sent; the returned account is not loaded yet.

        :param str account_url: Account URL, sent as ``kid`` from now on.
        :param JWK key: Account key, if not given to the constructor.

        """
        util.check_url(account_url, 'account_url')
        if key is not None:
            self.key = key
        self.kid = account_url
        return account_mod.Account(self, account_url)
