"""ACME orders."""
import datetime
import logging
from typing import List
from typing import Optional
from typing import Union

from cryptography import x509

from acmekit import authorization
from acmekit import certificate
from acmekit import crypto_util
from acmekit import errors
from acmekit import json_util
from acmekit import messages
from acmekit import problem
from acmekit import resources

logger = logging.getLogger(__name__)


class Order(resources.JSONResource):
    """Request for a certificate."""

    def _check(self, json: json_util.JSON) -> None:
        if json and 'identifiers' not in json:
            raise ValueError('Not an order: body has no identifiers')

    @property
    def identifiers(self) -> List[messages.Identifier]:
        return [value.as_identifier()  # type: ignore[misc]
                for value in self.json.get('identifiers').as_array()]

    @property
    def expires(self) -> Optional[datetime.datetime]:
        return self.json.get('expires').as_instant()

    @property
    def not_before(self) -> Optional[datetime.datetime]:
        return self.json.get('notBefore').as_instant()

    @property
    def not_after(self) -> Optional[datetime.datetime]:
        return self.json.get('notAfter').as_instant()

    @property
    def error(self) -> Optional[problem.Problem]:
        return self.json.get('error').as_problem(self.location)

    @property
    def authorizations(self) -> List[authorization.Authorization]:
        """Authorizations of the order, bound but not loaded yet."""
        return [authorization.Authorization(self.session, value.as_url())
                for value in self.json.get('authorizations').as_array()]

    @property
    def finalize_url(self) -> Optional[str]:
        return self.json.get('finalize').as_url()

    @property
    def certificate(self) -> Optional[certificate.Certificate]:
        """Issued certificate, ``None`` until the order is valid."""
        url = self.json.get('certificate').as_url()
        if url is None:
            return None
        return certificate.Certificate(self.session, url)

    def finalize(self, csr: Union[x509.CertificateSigningRequest, bytes, str]) -> None:
        """Send the CSR once all authorizations are valid.

        The order moves on to ``processing`` and then ``valid``; poll
        with `update`. A ``Retry-After`` hint is stored in `retry_after`.

        :param csr: `cryptography.x509.CertificateSigningRequest`, or its
            PEM or DER encoding.

        """
        der = crypto_util.csr_to_der(csr)
        url = self.finalize_url
        if url is None:
            raise errors.ProtocolError("Required field 'finalize' is missing")
        claims = json_util.JSONBuilder().put_base64('csr', der)
        logger.debug('Finalizing %r', self)
        with self.session.connect() as conn:
            conn.send_signed_request(url, claims)
            conn.accept(200)
            self._load(conn)
