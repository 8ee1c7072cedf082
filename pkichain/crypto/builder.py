# crypto/builder.py
"""Build and sign X.509 certificates from a CertificateDescriptor.

The caller supplies the complete descriptor (usage flags, CA constraints,
SANs); the builder only checks that the descriptor is consistent with the
issuer it is signed under and turns it into a DER certificate.
"""
import ipaddress
import logging
from datetime import timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from pkichain.common.errors import EncodingError, PolicyError, SigningError
from pkichain.common.models import (
    CertificateDescriptor,
    ExtKeyUsage,
    IssuedCertificate,
    KeyUsageFlag,
)
from pkichain.crypto.keys import keys_match

log = logging.getLogger(__name__)

EKU_OIDS = {
    ExtKeyUsage.SERVER_AUTH: ExtendedKeyUsageOID.SERVER_AUTH,
    ExtKeyUsage.CLIENT_AUTH: ExtendedKeyUsageOID.CLIENT_AUTH,
}


def parse_san(value: str) -> x509.GeneralName:
    """Parse ``DNS:<name>`` or ``IP:<address>`` into a general name."""
    kind, sep, body = value.partition(":")
    kind = kind.strip().upper()
    body = body.strip()
    if not sep or not body:
        raise EncodingError(f"malformed SAN {value!r}, expected DNS:<name> or IP:<address>")
    if kind == "DNS":
        if not body.isascii() or any(c.isspace() for c in body):
            raise EncodingError(f"DNS SAN {body!r} is not a valid ASCII host name")
        return x509.DNSName(body)
    if kind == "IP":
        try:
            return x509.IPAddress(ipaddress.ip_address(body))
        except ValueError as e:
            raise EncodingError(f"IP SAN {body!r} is not an IP address") from e
    raise EncodingError(f"unsupported SAN type {kind!r} in {value!r}")


def _utc(dt):
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _subject(common_name: str) -> x509.Name:
    if not common_name or not common_name.strip():
        raise EncodingError("subject common name is empty")
    try:
        return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    except ValueError as e:
        raise EncodingError(f"cannot encode common name {common_name!r}: {e}") from e


def _key_usage(flags) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=KeyUsageFlag.DIGITAL_SIGNATURE in flags,
        content_commitment=False,
        key_encipherment=KeyUsageFlag.KEY_ENCIPHERMENT in flags,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=KeyUsageFlag.CERT_SIGN in flags,
        crl_sign=KeyUsageFlag.CRL_SIGN in flags,
        encipher_only=False,
        decipher_only=False,
    )


def _basic_constraints(cert: x509.Certificate):
    try:
        return cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        return None


class CertificateBuilder:
    def __init__(self, enforce_validity_nesting: bool = True):
        self.enforce_validity_nesting = enforce_validity_nesting

    def issue(self, descriptor: CertificateDescriptor, subject_public_key,
              issuer_private_key, issuer_certificate=None) -> IssuedCertificate:
        """Sign ``descriptor`` for ``subject_public_key``.

        With no ``issuer_certificate`` the result is self-signed and
        ``issuer_private_key`` must belong to ``subject_public_key``.

        Raises:
          - EncodingError if a descriptor field cannot be serialized
          - PolicyError if the descriptor breaks a CA constraint
          - SigningError if the issuer key does not match or signing fails
        """
        self.check_descriptor(descriptor)
        subject = _subject(descriptor.common_name)
        sans = [parse_san(s) for s in descriptor.subject_alternative_names]

        if issuer_certificate is None:
            if not descriptor.is_ca:
                raise PolicyError("only CA certificates may be self-signed")
            if not keys_match(issuer_private_key, subject_public_key):
                raise SigningError("self-signing key does not correspond to the subject public key")
            issuer_name = subject
        else:
            if not keys_match(issuer_private_key, issuer_certificate.public_key()):
                raise SigningError(
                    f"issuer key does not correspond to issuer certificate {issuer_certificate.subject.rfc4514_string()}"
                )
            self.check_issuer(descriptor, issuer_certificate)
            issuer_name = issuer_certificate.subject

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_name)
            .public_key(subject_public_key)
            .serial_number(descriptor.serial_number)
            .not_valid_before(_utc(descriptor.not_before))
            .not_valid_after(_utc(descriptor.not_after))
            .add_extension(
                x509.BasicConstraints(
                    ca=descriptor.is_ca,
                    path_length=descriptor.max_path_len if descriptor.is_ca else None,
                ),
                critical=True,
            )
            .add_extension(_key_usage(descriptor.key_usage), critical=True)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(subject_public_key), critical=False)
        )
        if descriptor.extended_key_usage:
            builder = builder.add_extension(
                x509.ExtendedKeyUsage([EKU_OIDS[u] for u in descriptor.extended_key_usage]),
                critical=False,
            )
        if sans:
            builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)
        if issuer_certificate is not None:
            builder = builder.add_extension(_authority_key_id(issuer_certificate), critical=False)

        try:
            cert = builder.sign(issuer_private_key, hashes.SHA256())
        except (ValueError, TypeError) as e:
            raise SigningError(f"cannot sign certificate for {descriptor.common_name!r}: {e}") from e

        log.debug("signed serial %d CN=%s issuer=%s", descriptor.serial_number,
                  descriptor.common_name, issuer_name.rfc4514_string())
        return IssuedCertificate(
            descriptor=descriptor,
            certificate=cert,
            der=cert.public_bytes(serialization.Encoding.DER),
        )

    def check_descriptor(self, d: CertificateDescriptor) -> None:
        if d.serial_number < 1:
            raise EncodingError(f"serial number must be positive, got {d.serial_number}")
        if _utc(d.not_after) <= _utc(d.not_before):
            raise EncodingError(f"validity window of {d.common_name!r} ends before it starts")
        if d.is_ca:
            if d.max_path_len is None or d.max_path_len < 0:
                raise PolicyError(f"CA {d.common_name!r} needs a non-negative path length")
            if any(u in EKU_OIDS for u in d.extended_key_usage):
                raise PolicyError(f"CA {d.common_name!r} may not carry server/client auth usage")
            if d.subject_alternative_names:
                raise PolicyError(f"CA {d.common_name!r} may not carry subject alternative names")
        else:
            if d.max_path_len is not None:
                raise PolicyError(f"leaf {d.common_name!r} may not carry a path length")
            if KeyUsageFlag.CERT_SIGN in d.key_usage or KeyUsageFlag.CRL_SIGN in d.key_usage:
                raise PolicyError(f"leaf {d.common_name!r} may not sign certificates or CRLs")

    def check_issuer(self, d: CertificateDescriptor, issuer: x509.Certificate) -> None:
        name = issuer.subject.rfc4514_string()
        bc = _basic_constraints(issuer)
        if bc is None or not bc.ca:
            raise PolicyError(f"issuer {name} is not a CA")
        if d.is_ca and bc.path_length is not None:
            if bc.path_length == 0:
                raise PolicyError(f"issuer {name} has path length 0 and cannot sign CA {d.common_name!r}")
            if d.max_path_len >= bc.path_length:
                raise PolicyError(
                    f"path length {d.max_path_len} of {d.common_name!r} must be below issuer's {bc.path_length}"
                )
        if self.enforce_validity_nesting:
            if (_utc(d.not_before) < issuer.not_valid_before_utc
                    or _utc(d.not_after) > issuer.not_valid_after_utc):
                raise PolicyError(f"validity of {d.common_name!r} is not contained in issuer {name}'s")


def _authority_key_id(issuer: x509.Certificate) -> x509.AuthorityKeyIdentifier:
    try:
        ski = issuer.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
    except x509.ExtensionNotFound:
        return x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer.public_key())
    return x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski)
