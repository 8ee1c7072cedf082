# common/models.py
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict


class KeyUsageFlag(str, Enum):
    DIGITAL_SIGNATURE = "digital_signature"
    KEY_ENCIPHERMENT = "key_encipherment"
    CERT_SIGN = "key_cert_sign"
    CRL_SIGN = "crl_sign"


class ExtKeyUsage(str, Enum):
    SERVER_AUTH = "server_auth"
    CLIENT_AUTH = "client_auth"


class CertificateDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    serial_number: int
    common_name: str
    not_before: datetime
    not_after: datetime
    key_usage: FrozenSet[KeyUsageFlag]
    extended_key_usage: Tuple[ExtKeyUsage, ...] = ()
    is_ca: bool = False
    max_path_len: Optional[int] = None  # only meaningful when is_ca
    subject_alternative_names: Tuple[str, ...] = ()  # "DNS:name" / "IP:addr"


class KeyPair(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    private_key: rsa.RSAPrivateKey
    bits: int

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()


class IssuedCertificate(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    descriptor: CertificateDescriptor
    certificate: x509.Certificate
    der: bytes

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject
