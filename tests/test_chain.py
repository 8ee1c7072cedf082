import pytest

from pkichain.chain import CHAINS, ChainAssembler, assemble_chain, chain_members
from pkichain.common.errors import MissingArtifactError
from pkichain.crypto.pki import load_bundle
from pkichain.storage.store import FileArtifactStore, MemoryArtifactStore


def copy_store(store):
    clone = MemoryArtifactStore()
    clone.items = dict(store.items)
    return clone


def test_server_chain_is_exact_concatenation(store):
    assert store.read("server-chain.crt") == store.read("server.crt") + store.read("intermediateCA.crt")


def test_client_and_ca_chains(store):
    assert store.read("client-chain.crt") == store.read("client.crt") + store.read("intermediateCA.crt")
    assert store.read("ca-chain.crt") == store.read("rootCA.crt") + store.read("intermediateCA.crt")


def test_chain_order_is_leaf_first(store, hierarchy):
    certs = load_bundle(store.read("server-chain.crt"))
    assert certs == [hierarchy.server_cert.certificate, hierarchy.intermediate_cert.certificate]


def test_leaf_chains_exclude_root(store, hierarchy):
    root = hierarchy.root_cert.certificate
    for name in ("server-chain.crt", "client-chain.crt"):
        assert root not in load_bundle(store.read(name))


def test_assemble_chain_is_pure_concatenation():
    assert assemble_chain(b"a\n", b"b\n", b"c\n") == b"a\nb\nc\n"
    assert assemble_chain(b"leaf") == b"leaf"


def test_files_on_disk(generated_dir):
    fs = FileArtifactStore(generated_dir)
    for name in CHAINS:
        assert (generated_dir / name).is_file()
    assert fs.read("server-chain.crt") == fs.read("server.crt") + fs.read("intermediateCA.crt")


def test_absent_intermediate_fails_without_output(store):
    broken = copy_store(store)
    broken.discard(["intermediateCA.crt"] + list(CHAINS))
    with pytest.raises(MissingArtifactError):
        ChainAssembler(broken).assemble_all()
    assert not any(broken.exists(name) for name in CHAINS)


@pytest.mark.parametrize("garbage", [b"", b"not a certificate", b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"])
def test_corrupted_intermediate_fails(store, garbage):
    broken = copy_store(store)
    broken.discard(list(CHAINS))
    broken.write("intermediateCA.crt", garbage)
    with pytest.raises(MissingArtifactError):
        ChainAssembler(broken).assemble("server-chain.crt", ["server.crt", "intermediateCA.crt"])
    assert not broken.exists("server-chain.crt")


def test_absent_file_on_disk(tmp_path, generated_dir):
    fs = FileArtifactStore(tmp_path)
    fs.write("server.crt", FileArtifactStore(generated_dir).read("server.crt"))
    with pytest.raises(MissingArtifactError):
        ChainAssembler(fs).assemble("server-chain.crt", ["server.crt", "intermediateCA.crt"])
    assert not (tmp_path / "server-chain.crt").exists()


def test_orchestrator_names_failing_chain(settings, store):
    from pkichain.common.errors import HierarchyError
    from pkichain.hierarchy import PKIHierarchyOrchestrator

    broken = copy_store(store)
    broken.discard(["intermediateCA.crt"] + list(CHAINS))
    with pytest.raises(HierarchyError) as info:
        PKIHierarchyOrchestrator(settings, store=broken).assemble_chains()
    assert info.value.step == "assemble chain"
    assert info.value.artifact == "server-chain.crt"
    assert isinstance(info.value.__cause__, MissingArtifactError)


def test_chain_members():
    assert chain_members()["server-chain.crt"] == ["server.crt", "intermediateCA.crt"]
    assert chain_members()["ca-chain.crt"] == ["rootCA.crt", "intermediateCA.crt"]
