"""TLS probe - handshake (port 443 unless the input names one) and report the leaf certificate.

The handshake is verified against the system trust store, so a report with
``valid=True`` means the chain and hostname checked out. Certificate details
come from the DER form of the peer certificate, parsed with ``cryptography``.
"""

import asyncio
import logging
import ssl
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.x509 import ObjectIdentifier
from cryptography.x509.oid import SignatureAlgorithmOID

from netcheck.util.hosts import host_and_port
from netcheck.util.time import days_until
from netcheck.util.types import CertificateReport

logger = logging.getLogger(__name__)

_SIGNATURE_NAMES = {
    oid: name.replace("_WITH_", " with ").replace("_", "-")
    for name, oid in vars(SignatureAlgorithmOID).items()
    if isinstance(oid, ObjectIdentifier)
}


def public_key_algorithm(key) -> str:
    if isinstance(key, rsa.RSAPublicKey):
        return "RSA"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return "ECDSA"
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "Ed25519"
    if isinstance(key, ed448.Ed448PublicKey):
        return "Ed448"
    if isinstance(key, dsa.DSAPublicKey):
        return "DSA"
    return type(key).__name__


def signature_algorithm(cert: x509.Certificate) -> str:
    oid = cert.signature_algorithm_oid
    return _SIGNATURE_NAMES.get(oid, oid.dotted_string)


def fill_certificate(report: CertificateReport, der: Optional[bytes]) -> CertificateReport:
    """Populate report from a DER-encoded leaf certificate.

    Only exponent-modulus (RSA) keys report a key size; other key
    types keep ``key_size=0``.
    """
    if not der:
        report.error = "No TLS certificate found"
        return report

    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as e:
        report.error = f"Failed to parse certificate: {e}"
        return report

    public_key = cert.public_key()

    report.valid = True
    report.issuer = cert.issuer.rfc4514_string()
    report.subject = cert.subject.rfc4514_string()
    report.not_before = cert.not_valid_before_utc
    report.not_after = cert.not_valid_after_utc
    report.days_until_expiry = days_until(cert.not_valid_after_utc)
    report.serial_number = str(cert.serial_number)
    report.signature_algorithm = signature_algorithm(cert)
    report.public_key_algorithm = public_key_algorithm(public_key)
    if isinstance(public_key, rsa.RSAPublicKey):
        report.key_size = public_key.key_size
    return report


class TLSProbe:
    """Direct TLS handshake to read the certificate without an HTTP exchange."""

    def __init__(self, timeout: float = 15.0, port: int = 443):
        """Initialize TLS probe with handshake timeout and port."""
        self.timeout = timeout
        self.port = port

    async def check(self, domain: str) -> CertificateReport:
        """Handshake with SNI set to the bare host and report the leaf certificate.

        Connection or handshake failure fills only ``error``.
        """
        report = CertificateReport(domain=domain)
        try:
            host, port = host_and_port(domain, self.port)
        except ValueError as e:
            report.error = f"Invalid host: {e}"
            return report
        context = ssl.create_default_context()

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port, ssl=context, server_hostname=host),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.debug(f"TLS timeout for {host}:{port}")
            report.error = f"Failed to connect: timed out after {self.timeout:g}s"
            return report
        except (ssl.SSLError, OSError) as e:
            logger.debug(f"TLS error for {host}:{port}: {e}")
            report.error = f"Failed to connect: {e}"
            return report
        except Exception as e:
            logger.warning(f"Unexpected TLS error for {host}:{port}: {e}")
            report.error = f"Failed to connect: {e}"
            return report

        try:
            ssl_obj = writer.get_extra_info("ssl_object")
            der = ssl_obj.getpeercert(binary_form=True) if ssl_obj else None
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug(f"TLS close error for {host}: {e}")

        return fill_certificate(report, der)
