"""Tests for carotate.ca.keys.KeyPairFactory."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from carotate.ca.cert_utils import parse_subject_dn
from carotate.ca.keys import KeyPairFactory
from carotate.config.settings import build_settings
from carotate.core.errors import ConfigurationError


def _chain_settings(**overrides):
    return replace(build_settings({}).chain, **overrides)


class TestGenerateKeyPair:
    def test_ec_curve(self):
        factory = KeyPairFactory(_chain_settings(key_type="ec", ec_curve="secp384r1"))
        key = factory.generate_key_pair()
        assert isinstance(key, ec.EllipticCurvePrivateKey)
        assert key.curve.name == "secp384r1"

    def test_rsa_size(self):
        factory = KeyPairFactory(_chain_settings(key_type="rsa", rsa_key_size=2048))
        key = factory.generate_key_pair()
        assert isinstance(key, rsa.RSAPrivateKey)
        assert key.key_size == 2048

    def test_unknown_key_type(self):
        factory = KeyPairFactory(_chain_settings(key_type="dsa"))
        with pytest.raises(ConfigurationError) as exc_info:
            factory.generate_key_pair()
        assert exc_info.value.field == "chain.key_type"

    def test_unknown_curve(self):
        factory = KeyPairFactory(_chain_settings(key_type="ec", ec_curve="brainpool"))
        with pytest.raises(ConfigurationError):
            factory.generate_key_pair()

    def test_unknown_hash_rejected_up_front(self):
        with pytest.raises(ConfigurationError):
            KeyPairFactory(_chain_settings(hash_algorithm="md5"))


class TestIssue:
    @pytest.fixture()
    def factory(self):
        return KeyPairFactory(_chain_settings(key_type="ec", ec_curve="secp256r1"))

    def test_self_signed(self, factory):
        root = factory.issue(parse_subject_dn("CN=root"), validity_days=10)
        cert = root.certificate
        assert cert.issuer == cert.subject
        cert.verify_directly_issued_by(cert)
        constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints)
        assert constraints.critical
        assert constraints.value.ca
        assert constraints.value.path_length is None

    def test_signed_by_parent(self, factory):
        root = factory.issue(parse_subject_dn("CN=root"), validity_days=10)
        child = factory.issue(
            parse_subject_dn("CN=child"),
            validity_days=5,
            signer=root,
            path_length=0,
        )
        assert child.certificate.issuer == root.certificate.subject
        child.certificate.verify_directly_issued_by(root.certificate)
        aki = child.certificate.extensions.get_extension_for_class(
            x509.AuthorityKeyIdentifier,
        ).value
        ski = root.certificate.extensions.get_extension_for_class(
            x509.SubjectKeyIdentifier,
        ).value
        assert aki.key_identifier == ski.digest

    def test_validity_window(self, factory):
        before = datetime.now(UTC)
        issued = factory.issue(parse_subject_dn("CN=ca"), validity_days=30)
        not_after = issued.certificate.not_valid_after_utc
        assert before + timedelta(days=30) - timedelta(seconds=5) <= not_after
        assert not_after <= datetime.now(UTC) + timedelta(days=30)
        assert issued.certificate.not_valid_before_utc < before

    def test_reuses_supplied_key(self, factory):
        first = factory.issue(parse_subject_dn("CN=ca"), validity_days=1)
        second = factory.issue(
            parse_subject_dn("CN=ca"),
            validity_days=1,
            private_key=first.private_key,
        )
        assert second.key_pem == first.key_pem
        assert second.serial_number != first.serial_number
