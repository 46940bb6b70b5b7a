"""Tests for carotate.ca.cert_utils."""

from __future__ import annotations

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from carotate.ca.cert_utils import (
    build_ca_key_usage,
    format_subject_dn,
    hash_algorithm,
    load_certificates,
    parse_subject_dn,
)
from carotate.core.errors import ConfigurationError
from carotate.core.types import ErrorKind


class TestParseSubjectDn:
    def test_attributes_kept_in_order(self):
        name = parse_subject_dn("C=CZ, L=Prague, O=Test, CN=cluster-ca")
        oids = [attr.oid for attr in name]
        assert oids == [
            NameOID.COUNTRY_NAME,
            NameOID.LOCALITY_NAME,
            NameOID.ORGANIZATION_NAME,
            NameOID.COMMON_NAME,
        ]
        assert name.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "cluster-ca"

    def test_attribute_names_case_insensitive(self):
        name = parse_subject_dn("cn=lower")
        assert name.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value == "lower"

    def test_escaped_comma(self):
        name = parse_subject_dn(r"O=Acme\, Inc., CN=ca")
        assert name.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value == "Acme, Inc."

    @pytest.mark.parametrize(
        "dn",
        ["", "   ", "CN", "CN=", "=value", "XX=foo", "CN=ok, garbage"],
    )
    def test_malformed(self, dn):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_subject_dn(dn)
        assert exc_info.value.kind == ErrorKind.CONFIGURATION
        assert exc_info.value.field == "subject_dn"

    def test_invalid_country_code(self):
        with pytest.raises(ConfigurationError, match="Invalid value for 'C'"):
            parse_subject_dn("C=Czechia, CN=ca")


class TestFormatSubjectDn:
    def test_round_trips_parsed_dn(self):
        dn = "C=CZ, L=Prague, O=Test, CN=cluster-ca"
        assert format_subject_dn(parse_subject_dn(dn)) == dn

    def test_escapes_comma(self):
        name = x509.Name([x509.NameAttribute(NameOID.ORGANIZATION_NAME, "A, B")])
        assert format_subject_dn(name) == r"O=A\, B"


class TestHashAlgorithm:
    def test_known(self):
        assert isinstance(hash_algorithm("sha384"), hashes.SHA384)
        assert isinstance(hash_algorithm("SHA256"), hashes.SHA256)

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            hash_algorithm("md5")


def test_ca_key_usage_signs_certs_and_crls():
    usage = build_ca_key_usage()
    assert usage.key_cert_sign
    assert usage.crl_sign
    assert usage.digital_signature
    assert not usage.key_encipherment


class TestLoadCertificates:
    def test_chain_order_preserved(self, ca_chain):
        pem = ca_chain.operational.cert_pem + ca_chain.intermediate.cert_pem
        certs = load_certificates(pem, source="ca.crt")
        assert [c.subject for c in certs] == [
            ca_chain.operational.certificate.subject,
            ca_chain.intermediate.certificate.subject,
        ]

    def test_garbage(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_certificates(b"not a certificate", source="ca.crt")
        assert exc_info.value.field == "ca.crt"
