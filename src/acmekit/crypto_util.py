"""Crypto utilities."""
import ipaddress
import logging
from typing import List
from typing import Optional
from typing import Sequence
from typing import Set
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import ed448
from cryptography.hazmat.primitives.asymmetric import ed25519
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding

from acmekit import errors

logger = logging.getLogger(__name__)

# Union[] types cannot be used in isinstance expressions without upsetting
# mypy, so the private key types are listed again as a tuple.
CertificateIssuerPrivateKeyTypesTpl = (
    dsa.DSAPrivateKey,
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
)

PEM_CERTIFICATE_MARKER = b'-----BEGIN CERTIFICATE-----'


def make_csr(
    private_key_pem: bytes,
    domains: Optional[Union[Set[str], List[str]]] = None,
    must_staple: bool = False,
    ipaddrs: Optional[List[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]] = None,
) -> bytes:
    """Generate a CSR containing domains or IPs as subjectAltNames.

    :param buffer private_key_pem: Private key, in PEM PKCS#8 format.
    :param list domains: List of DNS names to include in subjectAltNames of CSR.
    :param bool must_staple: Whether to include the TLS Feature extension (aka
        OCSP Must Staple: https://tools.ietf.org/html/rfc7633).
    :param list ipaddrs: List of IPaddress(type ipaddress.IPv4Address or ipaddress.IPv6Address)
        names to include in subjectAltNames of CSR.

    :returns: buffer PEM-encoded Certificate Signing Request.

    """
    private_key = serialization.load_pem_private_key(private_key_pem, password=None)
    if not isinstance(private_key, CertificateIssuerPrivateKeyTypesTpl):
        raise ValueError(f"Invalid private key type: {type(private_key)}")
    if domains is None:
        domains = []
    if ipaddrs is None:
        ipaddrs = []
    if len(domains) + len(ipaddrs) == 0:
        raise ValueError(
            "At least one of domains or ipaddrs parameter need to be not empty"
        )

    builder = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([]))
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName(d) for d in domains]
                + [x509.IPAddress(i) for i in ipaddrs]
            ),
            critical=False,
        )
    )
    if must_staple:
        builder = builder.add_extension(
            # "status_request" is the feature commonly known as OCSP
            # Must-Staple
            x509.TLSFeature([x509.TLSFeatureType.status_request]),
            critical=False,
        )

    csr = builder.sign(private_key, hashes.SHA256())
    return csr.public_bytes(Encoding.PEM)


def csr_to_der(csr: Union[x509.CertificateSigningRequest, bytes, str]) -> bytes:
    """Normalize a CSR to DER.

    :param csr: `cryptography.x509.CertificateSigningRequest`, or its PEM
        (``bytes`` or ``str``) or DER (``bytes``) encoding.

    :raises ValueError: if the CSR cannot be loaded.

    """
    if isinstance(csr, x509.CertificateSigningRequest):
        return csr.public_bytes(Encoding.DER)
    if isinstance(csr, str):
        csr = csr.encode('ascii')
    if not isinstance(csr, bytes):
        raise TypeError(f'Unsupported CSR type: {type(csr).__name__}')
    if csr.lstrip().startswith(b'-----BEGIN'):
        loaded = x509.load_pem_x509_csr(csr)
    else:
        loaded = x509.load_der_x509_csr(csr)
    return loaded.public_bytes(Encoding.DER)


def load_pem_chain(data: bytes) -> List[x509.Certificate]:
    """Load a PEM-concatenated certificate chain.

    :param bytes data: One or more PEM certificates, leaf first.

    :returns: Certificates in the order they appear.
    :rtype: `list` of `cryptography.x509.Certificate`

    :raises .ProtocolError: if no certificate is found, or one is malformed.

    """
    if PEM_CERTIFICATE_MARKER not in data:
        raise errors.ProtocolError('No certificate found in PEM data')
    try:
        certs = x509.load_pem_x509_certificates(data)
    except ValueError as error:
        raise errors.ProtocolError(f'Malformed certificate chain: {error}')
    logger.debug('Loaded certificate chain of %d certificate(s)', len(certs))
    return certs


def dump_pem_chain(chain: Sequence[x509.Certificate]) -> bytes:
    """Dump certificate chain into a PEM bundle.

    :param list chain: List of `cryptography.x509.Certificate`, leaf first.

    :returns: certificate chain bundle
    :rtype: bytes

    """
    # x509.Certificate.public_bytes includes the ending newline character
    return b"".join(cert.public_bytes(Encoding.PEM) for cert in chain)
