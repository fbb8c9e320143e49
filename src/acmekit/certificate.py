"""Issued certificates."""
import logging
import typing
from typing import BinaryIO
from typing import List
from typing import Optional
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
import josepy as jose

from acmekit import connection
from acmekit import crypto_util
from acmekit import json_util
from acmekit import messages
from acmekit import resources

if typing.TYPE_CHECKING:
    from acmekit import session as session_mod  # pragma: no cover

logger = logging.getLogger(__name__)

SUCCESS_STATUS_CODES = tuple(range(200, 300))


class Certificate(resources.Resource):
    """Certificate issued for an order.

    The chain is downloaded on first use and kept.

    """

    def __init__(self, session: 'session_mod.Session', location: Optional[str] = None) -> None:
        super().__init__(session, location)
        self._chain: Optional[List[x509.Certificate]] = None
        self._alternates: List[str] = []

    def download(self) -> None:
        """Download the certificate chain, replacing any earlier download."""
        logger.debug('Downloading %r', self)
        with self.session.connect() as conn:
            self._fetch(conn, accept=connection.PEM_CHAIN_CONTENT_TYPE)
            conn.accept(200)
            chain = conn.read_certificates()
            alternates = conn.links('alternate')
        self._chain = chain
        self._alternates = alternates

    @property
    def chain(self) -> List[x509.Certificate]:
        """Certificate chain, leaf first."""
        if self._chain is None:
            self.download()
        return list(self._chain)  # type: ignore[arg-type]

    @property
    def certificate(self) -> x509.Certificate:
        """Leaf certificate."""
        return self.chain[0]

    @property
    def alternates(self) -> List[str]:
        """URLs of alternate chains offered with the last download."""
        if self._chain is None:
            self.download()
        return list(self._alternates)

    def alternate_certificates(self) -> List['Certificate']:
        return [Certificate(self.session, url) for url in self.alternates]

    def write_certificate(self, out: BinaryIO) -> None:
        """Write the chain in PEM format, leaf first.

        :param out: Binary file-like object.

        """
        out.write(crypto_util.dump_pem_chain(self.chain))

    def revoke(self, reason: Union[messages.RevocationReason, int, None] = None) -> None:
        """Revoke the certificate with the account key.

        :param reason: Revocation reason, or ``None`` to leave it out.

        """
        revoke(self.session, self.certificate, reason)


def revoke(session: 'session_mod.Session', cert: x509.Certificate,
           reason: Union[messages.RevocationReason, int, None] = None,
           key: Optional[jose.JWK] = None) -> None:
    """Revoke certificate.

    :param .Session session:
    :param cert: Certificate to revoke.
    :param reason: Revocation reason, or ``None`` to leave it out.
    :param JWK key: Key of the certificate. If given, the request is
        signed with it instead of the account key.

    :raises ValueError: if ``reason`` is not a known reason code.
    :raises .ServerError: if revocation is unsuccessful.

    """
    claims = json_util.JSONBuilder().put_base64('certificate', cert.public_bytes(Encoding.DER))
    if reason is not None:
        claims.put('reason', int(messages.RevocationReason.from_code(int(reason))))
    url = session.resource_url(messages.REVOKE_CERT)
    logger.debug('Revoking certificate %x', cert.serial_number)
    with session.connect() as conn:
        conn.send_signed_request(url, claims, key=key, use_kid=key is None)
        conn.accept(*SUCCESS_STATUS_CODES)
