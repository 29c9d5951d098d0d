"""
TLS contexts and ad-hoc certificates.

Gemini requires TLS 1.2 or newer on every connection. Servers commonly use
self-signed certificates (clients are expected to pin them rather than
validate a CA chain), so ``generate_ad_hoc_certificate`` can create one on
the fly for development.
"""

import datetime
import logging
import os
import ssl
import tempfile
from typing import Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


logger = logging.getLogger(__name__)


def create_server_context(certfile: str, keyfile: Optional[str] = None) -> ssl.SSLContext:
    """
    Build the context used to wrap accepted sockets.

    Client certificates are not requested (``CERT_NONE``), so
    ``getpeercert()`` is always None on the server side.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(certfile, keyfile)
    context.verify_mode = ssl.CERT_NONE
    return context


def create_client_context(
    verify: bool = False,
    certfile: Optional[str] = None,
    keyfile: Optional[str] = None,
) -> ssl.SSLContext:
    """
    Build the context for outgoing requests.

    Args:
        verify: Check the server certificate against the system CA store
                and the hostname. Off by default: most Gemini servers use
                self-signed certificates, and trust-on-first-use pinning is
                out of scope for this client.
        certfile: Optional client certificate, for servers that ask for
                  one. This package's own server never does.
        keyfile: Private key for ``certfile``.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    if verify:
        context.load_default_certs()
    else:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    if certfile:
        context.load_cert_chain(certfile, keyfile)
    return context


def generate_ad_hoc_certificate(
    hostname: str,
    directory: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Create (or reuse) a self-signed certificate for ``hostname``.

    Files are written as ``<hostname>.crt`` and ``<hostname>.key`` in
    ``directory`` (the system temp dir by default) and reused on the next
    start, so the certificate fingerprint stays stable for clients that
    pinned it.

    Returns:
        (certfile, keyfile) paths.
    """
    directory = directory or tempfile.gettempdir()
    certfile = os.path.join(directory, f"{hostname}.crt")
    keyfile = os.path.join(directory, f"{hostname}.key")

    if os.path.exists(certfile) and os.path.exists(keyfile):
        logger.debug(f"Reusing ad-hoc certificate {certfile}")
        return certfile, keyfile

    logger.info(f"Generating ad-hoc certificate for {hostname!r}")
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with open(keyfile, "wb") as fp:
        fp.write(
            private_key.private_bytes(
                serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
    os.chmod(keyfile, 0o600)

    subject_name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hostname)])
    not_valid_before = datetime.datetime.now(datetime.timezone.utc)
    not_valid_after = not_valid_before + datetime.timedelta(days=365)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject_name)
        .issuer_name(subject_name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_valid_before)
        .not_valid_after(not_valid_after)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(hostname)]),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )
    with open(certfile, "wb") as fp:
        fp.write(certificate.public_bytes(serialization.Encoding.PEM))

    return certfile, keyfile
