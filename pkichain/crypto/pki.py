# crypto/pki.py
"""X.509 certificate helpers (issuer checks, path verification, fingerprint)."""
import ipaddress
import time
from datetime import datetime
from typing import Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509.verification import (
    Criticality,
    ExtensionPolicy,
    PolicyBuilder,
    Store,
    VerificationError,
)

from pkichain.common.utils import utc_now


def load_cert(pem_bytes: bytes) -> x509.Certificate:
    return x509.load_pem_x509_certificate(pem_bytes)


def load_bundle(pem_bytes: bytes):
    """All certificates of a concatenated PEM file, in file order."""
    return x509.load_pem_x509_certificates(pem_bytes)


def common_name(name: x509.Name) -> Optional[str]:
    attrs = name.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
    return attrs[0].value if attrs else None


def is_self_signed(cert: x509.Certificate) -> bool:
    """Issuer equals subject and the certificate verifies under its own key. Validity is not checked."""
    if cert.issuer != cert.subject:
        return False
    try:
        cert.public_key().verify(cert.signature, cert.tbs_certificate_bytes,
                                 padding.PKCS1v15(), cert.signature_hash_algorithm)
    except (InvalidSignature, TypeError, ValueError):
        return False
    return True


def client_extension_policies():
    """WebPKI defaults, except that client certificates need not carry a SAN."""
    ee = ExtensionPolicy.webpki_defaults_ee().may_be_present(
        x509.SubjectAlternativeName, Criticality.AGNOSTIC, None)
    return dict(ca_policy=ExtensionPolicy.webpki_defaults_ca(), ee_policy=ee)


def verify_cert_against_ca(cert: x509.Certificate, ca: x509.Certificate) -> Tuple[bool, str]:
    """Check that ``cert`` names ``ca`` as issuer, is signed by it and is currently valid."""
    # issuer check
    if cert.issuer != ca.subject:
        return False, "issuer_mismatch"
    # validity
    now = time.time()
    if cert.not_valid_before_utc.timestamp() > now or cert.not_valid_after_utc.timestamp() < now:
        return False, "expired_or_not_yet_valid"
    # signature verification
    try:
        ca.public_key().verify(cert.signature, cert.tbs_certificate_bytes,
                               padding.PKCS1v15(), cert.signature_hash_algorithm)
    except InvalidSignature:
        return False, "bad_signature"
    except (TypeError, ValueError) as e:
        return False, f"verify_failed:{e}"
    return True, "ok"


def _subject_name(host: str) -> x509.GeneralName:
    try:
        return x509.IPAddress(ipaddress.ip_address(host))
    except ValueError:
        return x509.DNSName(host)


def verify_chain(leaf_pem: bytes, bundle_pem: bytes, purpose: str = "server",
                 host: Optional[str] = None, at: Optional[datetime] = None) -> Tuple[bool, str]:
    """Verify ``leaf_pem`` through the certificates of ``bundle_pem``.

    Self-signed members of the bundle are the trust anchors, the rest are
    offered as intermediates. ``purpose`` is ``"server"`` (``host`` required,
    checked against the SANs) or ``"client"``.
    """
    try:
        leaf = load_cert(leaf_pem)
        bundle = load_bundle(bundle_pem)
    except ValueError as e:
        return False, f"unreadable_certificate:{e}"
    anchors = [c for c in bundle if is_self_signed(c)]
    intermediates = [c for c in bundle if not is_self_signed(c)]
    if not anchors:
        return False, "no_trust_anchor"

    builder = PolicyBuilder().store(Store(anchors)).time(at or utc_now())
    try:
        if purpose == "server":
            if not host:
                return False, "host_required"
            builder.build_server_verifier(_subject_name(host)).verify(leaf, intermediates)
        elif purpose == "client":
            builder.extension_policies(**client_extension_policies()).build_client_verifier().verify(
                leaf, intermediates)
        else:
            return False, f"unknown_purpose:{purpose}"
    except VerificationError as e:
        return False, f"verify_failed:{e}"
    return True, "ok"


def cert_fingerprint_sha256(cert: x509.Certificate) -> str:
    return cert.fingerprint(hashes.SHA256()).hex()
