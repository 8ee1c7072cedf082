# hierarchy.py
"""Root -> intermediate -> server, client issuance, then persistence and chains."""
import logging
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict

from pkichain.chain import CHAINS, ChainAssembler
from pkichain.common.config import Settings
from pkichain.common.errors import HierarchyError, PKIError, PolicyError
from pkichain.common.models import IssuedCertificate, KeyPair
from pkichain.common.utils import utc_now
from pkichain.crypto.builder import CertificateBuilder
from pkichain.crypto.keys import KeyPairGenerator
from pkichain.crypto.policy import (
    ISSUANCE_ORDER,
    ISSUER_OF,
    Role,
    cert_name,
    key_name,
    role_policies,
)
from pkichain.storage.pem import certificate_pem, private_key_pem
from pkichain.storage.store import ArtifactStore, FileArtifactStore

log = logging.getLogger(__name__)


class Hierarchy(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    keys: Dict[Role, KeyPair]
    certs: Dict[Role, IssuedCertificate]

    @property
    def root_key(self) -> KeyPair:
        return self.keys[Role.ROOT]

    @property
    def root_cert(self) -> IssuedCertificate:
        return self.certs[Role.ROOT]

    @property
    def intermediate_key(self) -> KeyPair:
        return self.keys[Role.INTERMEDIATE]

    @property
    def intermediate_cert(self) -> IssuedCertificate:
        return self.certs[Role.INTERMEDIATE]

    @property
    def server_cert(self) -> IssuedCertificate:
        return self.certs[Role.SERVER]

    @property
    def client_cert(self) -> IssuedCertificate:
        return self.certs[Role.CLIENT]


def artifact_names():
    """Every file a run produces."""
    names = []
    for role in ISSUANCE_ORDER:
        names += [key_name(role), cert_name(role)]
    return names + list(CHAINS)


class PKIHierarchyOrchestrator:
    def __init__(self, settings: Optional[Settings] = None, store: Optional[ArtifactStore] = None,
                 key_generator: Optional[KeyPairGenerator] = None,
                 builder: Optional[CertificateBuilder] = None,
                 clock: Callable = utc_now):
        self.settings = settings or Settings()
        self.store = store if store is not None else FileArtifactStore(self.settings.out_dir)
        self.key_generator = key_generator or KeyPairGenerator()
        self.builder = builder or CertificateBuilder(self.settings.enforce_validity_nesting)
        self.clock = clock
        self.policies = role_policies(self.settings)

    def _step(self, step: str, artifact: str, fn, *args):
        try:
            return fn(*args)
        except PKIError as e:
            log.error("%s failed for %s: %s", step, artifact, e)
            raise HierarchyError(step, artifact, str(e)) from e

    def build_hierarchy(self) -> Hierarchy:
        """Issue all four certificates in memory. Nothing touches the store."""
        now = self.clock()
        keys: Dict[Role, KeyPair] = {}
        certs: Dict[Role, IssuedCertificate] = {}
        serials = set()
        for role in ISSUANCE_ORDER:
            policy = self.policies[role]
            if policy.serial_number in serials:
                err = PolicyError(f"serial number {policy.serial_number} already issued in this run")
                raise HierarchyError("issue certificate", cert_name(role), str(err)) from err
            serials.add(policy.serial_number)

            keys[role] = self._step("generate key", key_name(role),
                                    self.key_generator.generate, policy.key_bits)
            issuer = ISSUER_OF[role]
            if issuer is None:
                issuer_key, issuer_cert = keys[role].private_key, None
            else:
                issuer_key, issuer_cert = keys[issuer].private_key, certs[issuer].certificate
            certs[role] = self._step("issue certificate", cert_name(role), self.builder.issue,
                                     policy.describe(now), keys[role].public_key, issuer_key, issuer_cert)
            log.info("%s certificate issued: CN=%s serial=%d", role.value,
                     policy.common_name, policy.serial_number)
        return Hierarchy(keys=keys, certs=certs)

    def persist(self, hierarchy: Hierarchy) -> None:
        for role in ISSUANCE_ORDER:
            self._step("write key", key_name(role), self.store.write,
                       key_name(role), private_key_pem(hierarchy.keys[role].private_key))
            self._step("write certificate", cert_name(role), self.store.write,
                       cert_name(role), certificate_pem(hierarchy.certs[role].certificate))

    def assemble_chains(self) -> Dict[str, bytes]:
        return ChainAssembler(self.store).assemble_all(wrap=self._step)

    def generate(self) -> Hierarchy:
        """Full run: drop previous artifacts, issue, persist, assemble chains."""
        self._step("discard previous artifacts", "*", self.store.discard, artifact_names())
        hierarchy = self.build_hierarchy()
        self.persist(hierarchy)
        self.assemble_chains()
        log.info("certificate generation complete")
        return hierarchy
