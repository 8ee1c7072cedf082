import pytest

from pkichain.common.config import Settings
from pkichain.crypto.keys import KeyPairGenerator
from pkichain.hierarchy import PKIHierarchyOrchestrator
from pkichain.storage.store import FileArtifactStore, MemoryArtifactStore

# 2048-bit CA keys keep the suite fast; policy is otherwise the default one
FAST = dict(key_bits_ca=2048, key_bits_leaf=2048)


@pytest.fixture(scope="session")
def settings():
    return Settings(**FAST)


@pytest.fixture(scope="session")
def memory_run(settings):
    store = MemoryArtifactStore()
    hierarchy = PKIHierarchyOrchestrator(settings, store=store).generate()
    return hierarchy, store


@pytest.fixture(scope="session")
def hierarchy(memory_run):
    return memory_run[0]


@pytest.fixture(scope="session")
def store(memory_run):
    return memory_run[1]


@pytest.fixture(scope="session")
def generated_dir(tmp_path_factory, settings):
    out = tmp_path_factory.mktemp("certs")
    cfg = settings.with_overrides(out_dir=str(out))
    PKIHierarchyOrchestrator(cfg, store=FileArtifactStore(out)).generate()
    return out


@pytest.fixture(scope="session")
def spare_keys():
    gen = KeyPairGenerator()
    return [gen.generate(2048) for _ in range(3)]


@pytest.fixture(scope="session")
def foreign_dir(tmp_path_factory, settings):
    """A second, unrelated hierarchy: its client certificate does not chain to our root."""
    out = tmp_path_factory.mktemp("foreign")
    cfg = settings.with_overrides(out_dir=str(out), root_cn="OtherRootCA", intermediate_cn="OtherIntermediateCA")
    PKIHierarchyOrchestrator(cfg, store=FileArtifactStore(out)).generate()
    return out


@pytest.fixture(scope="session")
def impostor_dir(tmp_path_factory, generated_dir, foreign_dir):
    """Trusts our CA chain but presents the foreign client certificate."""
    out = tmp_path_factory.mktemp("impostor")
    (out / "ca-chain.crt").write_bytes((generated_dir / "ca-chain.crt").read_bytes())
    for name in ("client-chain.crt", "client.key"):
        (out / name).write_bytes((foreign_dir / name).read_bytes())
    return out
