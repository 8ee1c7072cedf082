import ipaddress

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import ExtendedKeyUsageOID

from pkichain.common.errors import EncodingError, PolicyError, SigningError
from pkichain.common.models import ExtKeyUsage
from pkichain.common.utils import add_years, utc_now
from pkichain.crypto.builder import CertificateBuilder, parse_san
from pkichain.crypto.policy import Role, role_policies


@pytest.fixture(scope="module")
def policies(settings):
    return role_policies(settings)


def describe(policies, role, **update):
    d = policies[role].describe(utc_now())
    return d.model_copy(update=update) if update else d


def ext(cert, cls):
    return cert.extensions.get_extension_for_class(cls).value


def test_self_signed_root(policies, spare_keys):
    kp = spare_keys[0]
    issued = CertificateBuilder().issue(describe(policies, Role.ROOT), kp.public_key, kp.private_key)
    cert = issued.certificate
    assert cert.issuer == cert.subject
    assert cert.serial_number == 1
    bc = ext(cert, x509.BasicConstraints)
    assert bc.ca and bc.path_length == 2
    ku = ext(cert, x509.KeyUsage)
    assert ku.key_cert_sign and ku.crl_sign and ku.digital_signature
    with pytest.raises(x509.ExtensionNotFound):
        cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage)
    with pytest.raises(x509.ExtensionNotFound):
        cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)
    assert issued.der == cert.public_bytes(serialization.Encoding.DER)


def test_self_signed_key_mismatch(policies, spare_keys):
    with pytest.raises(SigningError):
        CertificateBuilder().issue(describe(policies, Role.ROOT),
                                   spare_keys[0].public_key, spare_keys[1].private_key)


def test_self_signed_leaf_refused(policies, spare_keys):
    kp = spare_keys[0]
    with pytest.raises(PolicyError):
        CertificateBuilder().issue(describe(policies, Role.CLIENT), kp.public_key, kp.private_key)


def test_issuer_key_must_match_issuer_certificate(policies, spare_keys, hierarchy):
    with pytest.raises(SigningError):
        CertificateBuilder().issue(describe(policies, Role.SERVER), spare_keys[0].public_key,
                                   spare_keys[1].private_key, hierarchy.intermediate_cert.certificate)


def test_leaf_signed_by_intermediate(policies, spare_keys, hierarchy):
    inter = hierarchy.intermediate_cert.certificate
    issued = CertificateBuilder().issue(describe(policies, Role.SERVER), spare_keys[0].public_key,
                                        hierarchy.intermediate_key.private_key, inter)
    cert = issued.certificate
    assert cert.issuer == inter.subject
    assert ext(cert, x509.BasicConstraints).ca is False
    assert list(ext(cert, x509.ExtendedKeyUsage)) == [ExtendedKeyUsageOID.SERVER_AUTH]
    san = ext(cert, x509.SubjectAlternativeName)
    assert san.get_values_for_type(x509.DNSName) == ["localhost"]
    assert san.get_values_for_type(x509.IPAddress) == [ipaddress.ip_address("127.0.0.1")]
    aki = ext(cert, x509.AuthorityKeyIdentifier)
    assert aki.key_identifier == ext(inter, x509.SubjectKeyIdentifier).digest


def test_non_ca_issuer_refused(policies, spare_keys, hierarchy):
    server = hierarchy.server_cert.certificate
    with pytest.raises(PolicyError):
        CertificateBuilder().issue(describe(policies, Role.CLIENT), spare_keys[0].public_key,
                                   hierarchy.keys[Role.SERVER].private_key, server)


def test_no_ca_below_path_length_zero(policies, spare_keys, hierarchy):
    sub_ca = describe(policies, Role.INTERMEDIATE, serial_number=5)
    with pytest.raises(PolicyError):
        CertificateBuilder().issue(sub_ca, spare_keys[0].public_key,
                                   hierarchy.intermediate_key.private_key,
                                   hierarchy.intermediate_cert.certificate)


def test_path_length_must_decrease(policies, spare_keys, hierarchy):
    sub_ca = describe(policies, Role.INTERMEDIATE, max_path_len=2)
    with pytest.raises(PolicyError):
        CertificateBuilder().issue(sub_ca, spare_keys[0].public_key,
                                   hierarchy.root_key.private_key, hierarchy.root_cert.certificate)


@pytest.mark.parametrize("update", [
    {"extended_key_usage": (ExtKeyUsage.SERVER_AUTH,)},
    {"max_path_len": None},
    {"subject_alternative_names": ("DNS:ca.example",)},
])
def test_ca_descriptor_constraints(policies, spare_keys, update):
    kp = spare_keys[0]
    with pytest.raises(PolicyError):
        CertificateBuilder().issue(describe(policies, Role.ROOT, **update), kp.public_key, kp.private_key)


def test_leaf_may_not_carry_path_length(policies, spare_keys, hierarchy):
    with pytest.raises(PolicyError):
        CertificateBuilder().issue(describe(policies, Role.CLIENT, max_path_len=0),
                                   spare_keys[0].public_key, hierarchy.intermediate_key.private_key,
                                   hierarchy.intermediate_cert.certificate)


@pytest.mark.parametrize("san", ["IP:999.1.1.1", "URI:https://x", "DNS:", "localhost", "DNS:bücher.example"])
def test_malformed_san(policies, spare_keys, hierarchy, san):
    with pytest.raises(EncodingError):
        CertificateBuilder().issue(describe(policies, Role.SERVER, subject_alternative_names=(san,)),
                                   spare_keys[0].public_key, hierarchy.intermediate_key.private_key,
                                   hierarchy.intermediate_cert.certificate)


def test_parse_san_ipv6():
    assert parse_san("IP:::1") == x509.IPAddress(ipaddress.ip_address("::1"))
    assert parse_san("dns:example.test") == x509.DNSName("example.test")


def test_empty_common_name(policies, spare_keys):
    kp = spare_keys[0]
    with pytest.raises(EncodingError):
        CertificateBuilder().issue(describe(policies, Role.ROOT, common_name=""), kp.public_key, kp.private_key)


def test_inverted_validity_window(policies, spare_keys):
    kp = spare_keys[0]
    d = describe(policies, Role.ROOT)
    with pytest.raises(EncodingError):
        CertificateBuilder().issue(d.model_copy(update={"not_after": d.not_before}), kp.public_key, kp.private_key)


# Child validity nesting is enforced by default; the permissive mode keeps
# the behaviour of issuing whatever window the descriptor asks for.
def outliving_leaf(policies, hierarchy):
    d = describe(policies, Role.CLIENT)
    return d.model_copy(update={"not_after": add_years(hierarchy.intermediate_cert.certificate.not_valid_after_utc, 1)})


def test_validity_nesting_enforced(policies, spare_keys, hierarchy):
    with pytest.raises(PolicyError):
        CertificateBuilder().issue(outliving_leaf(policies, hierarchy), spare_keys[0].public_key,
                                   hierarchy.intermediate_key.private_key,
                                   hierarchy.intermediate_cert.certificate)


def test_validity_nesting_permissive(policies, spare_keys, hierarchy):
    inter = hierarchy.intermediate_cert.certificate
    issued = CertificateBuilder(enforce_validity_nesting=False).issue(
        outliving_leaf(policies, hierarchy), spare_keys[0].public_key,
        hierarchy.intermediate_key.private_key, inter)
    assert issued.certificate.not_valid_after_utc > inter.not_valid_after_utc
