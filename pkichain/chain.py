# chain.py
"""Chain files: a leaf certificate followed by its issuers, byte for byte."""
import logging
from typing import Dict, List, Sequence, Tuple

from pkichain.common.errors import MissingArtifactError
from pkichain.crypto.policy import Role, cert_name
from pkichain.storage.pem import is_certificate_pem
from pkichain.storage.store import ArtifactStore

log = logging.getLogger(__name__)

# chain file -> members, leaf first; the root only travels in ca-chain.crt
CHAINS: Dict[str, Tuple[Role, ...]] = {
    "server-chain.crt": (Role.SERVER, Role.INTERMEDIATE),
    "client-chain.crt": (Role.CLIENT, Role.INTERMEDIATE),
    "ca-chain.crt": (Role.ROOT, Role.INTERMEDIATE),
}


def chain_members() -> Dict[str, List[str]]:
    return {name: [cert_name(r) for r in roles] for name, roles in CHAINS.items()}


def assemble_chain(leaf_pem: bytes, *issuer_pems: bytes) -> bytes:
    return b"".join((leaf_pem,) + issuer_pems)


class ChainAssembler:
    def __init__(self, store: ArtifactStore):
        self.store = store

    def read_member(self, name: str) -> bytes:
        data = self.store.read(name)
        if not is_certificate_pem(data):
            raise MissingArtifactError(f"{name} is not a readable PEM certificate")
        return data

    def assemble(self, chain_name: str, members: Sequence[str]) -> bytes:
        """Read every member, then write ``chain_name``. Nothing is written if a member is unusable."""
        if not members:
            raise MissingArtifactError(f"{chain_name} has no members")
        parts = [self.read_member(m) for m in members]
        chain = assemble_chain(*parts)
        self.store.write(chain_name, chain)
        log.info("assembled %s from %s", chain_name, " + ".join(members))
        return chain

    def assemble_all(self, wrap=None) -> Dict[str, bytes]:
        """Write every chain of CHAINS. ``wrap(step, artifact, fn, *args)`` runs each assembly if given."""
        chains = {}
        for name, members in chain_members().items():
            if wrap is None:
                chains[name] = self.assemble(name, members)
            else:
                chains[name] = wrap("assemble chain", name, self.assemble, name, members)
        return chains
