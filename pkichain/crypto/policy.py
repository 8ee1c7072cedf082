# crypto/policy.py
"""Per-role issuance policy.

Each entity of the hierarchy is described by one RolePolicy row. The rows are
the only place where usage flags, CA constraints and SANs are decided; the
builder never infers them.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from pkichain.common.config import Settings
from pkichain.common.models import CertificateDescriptor, ExtKeyUsage, KeyUsageFlag
from pkichain.common.utils import add_years


class Role(str, Enum):
    ROOT = "root"
    INTERMEDIATE = "intermediate"
    SERVER = "server"
    CLIENT = "client"


CA_KEY_USAGE = frozenset({KeyUsageFlag.CERT_SIGN, KeyUsageFlag.CRL_SIGN, KeyUsageFlag.DIGITAL_SIGNATURE})
LEAF_KEY_USAGE = frozenset({KeyUsageFlag.DIGITAL_SIGNATURE, KeyUsageFlag.KEY_ENCIPHERMENT})

ARTIFACT_NAMES = {
    Role.ROOT: "rootCA",
    Role.INTERMEDIATE: "intermediateCA",
    Role.SERVER: "server",
    Role.CLIENT: "client",
}

# every issuer precedes its subjects
ISSUANCE_ORDER = (Role.ROOT, Role.INTERMEDIATE, Role.SERVER, Role.CLIENT)
ISSUER_OF = {
    Role.ROOT: None,
    Role.INTERMEDIATE: Role.ROOT,
    Role.SERVER: Role.INTERMEDIATE,
    Role.CLIENT: Role.INTERMEDIATE,
}


class RolePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    serial_number: int
    common_name: str
    validity_years: int
    key_bits: int
    key_usage: FrozenSet[KeyUsageFlag]
    extended_key_usage: Tuple[ExtKeyUsage, ...] = ()
    is_ca: bool = False
    max_path_len: Optional[int] = None
    subject_alternative_names: Tuple[str, ...] = ()

    def describe(self, not_before: datetime) -> CertificateDescriptor:
        return CertificateDescriptor(
            serial_number=self.serial_number,
            common_name=self.common_name,
            not_before=not_before,
            not_after=add_years(not_before, self.validity_years),
            key_usage=self.key_usage,
            extended_key_usage=self.extended_key_usage,
            is_ca=self.is_ca,
            max_path_len=self.max_path_len,
            subject_alternative_names=self.subject_alternative_names,
        )


def role_policies(settings: Settings) -> Dict[Role, RolePolicy]:
    return {
        Role.ROOT: RolePolicy(
            role=Role.ROOT, serial_number=1,
            common_name=settings.root_cn,
            validity_years=settings.ca_validity_years,
            key_bits=settings.key_bits_ca,
            key_usage=CA_KEY_USAGE, is_ca=True, max_path_len=2,
        ),
        Role.INTERMEDIATE: RolePolicy(
            role=Role.INTERMEDIATE, serial_number=2,
            common_name=settings.intermediate_cn,
            validity_years=settings.intermediate_validity_years,
            key_bits=settings.key_bits_ca,
            key_usage=CA_KEY_USAGE, is_ca=True, max_path_len=0,
        ),
        Role.SERVER: RolePolicy(
            role=Role.SERVER, serial_number=3,
            common_name=settings.server_cn,
            validity_years=settings.leaf_validity_years,
            key_bits=settings.key_bits_leaf,
            key_usage=LEAF_KEY_USAGE,
            extended_key_usage=(ExtKeyUsage.SERVER_AUTH,),
            subject_alternative_names=settings.server_sans,
        ),
        Role.CLIENT: RolePolicy(
            role=Role.CLIENT, serial_number=4,
            common_name=settings.client_cn,
            validity_years=settings.leaf_validity_years,
            key_bits=settings.key_bits_leaf,
            key_usage=LEAF_KEY_USAGE,
            extended_key_usage=(ExtKeyUsage.CLIENT_AUTH,),
        ),
    }


def cert_name(role: Role) -> str:
    return ARTIFACT_NAMES[role] + ".crt"


def key_name(role: Role) -> str:
    return ARTIFACT_NAMES[role] + ".key"
