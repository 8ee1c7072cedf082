# storage/pem.py
"""PEM framing for the persisted artifacts."""
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from pkichain.common.errors import EncodingError

CERT_LABEL = b"CERTIFICATE"


def private_key_pem(key) -> bytes:
    """PKCS#1 ("RSA PRIVATE KEY"), unencrypted."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def certificate_pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def load_private_key(pem_bytes: bytes):
    try:
        return serialization.load_pem_private_key(pem_bytes, password=None)
    except (ValueError, TypeError) as e:
        raise EncodingError(f"not a PEM private key: {e}") from e


def is_certificate_pem(data: bytes) -> bool:
    """True when ``data`` holds exactly one parseable PEM certificate block."""
    if data.count(b"-----BEGIN " + CERT_LABEL + b"-----") != 1:
        return False
    try:
        x509.load_pem_x509_certificate(data)
    except ValueError:
        return False
    return True


def read_certificate(store, name: str) -> x509.Certificate:
    """Load artifact ``name`` from ``store`` as a PEM certificate."""
    data = store.read(name)
    try:
        return x509.load_pem_x509_certificate(data)
    except ValueError as e:
        raise EncodingError(f"{name} is not a readable PEM certificate: {e}") from e
