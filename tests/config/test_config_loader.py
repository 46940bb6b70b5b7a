"""Tests for carotate.config.loader and carotate.config.settings."""

from __future__ import annotations

import json

import pytest
import yaml

from carotate.config import (
    ConfigValidationError,
    build_settings,
    collect_config_errors,
    load_config,
    load_config_data,
)


class TestDefaults:
    def test_empty_document(self):
        settings = build_settings({})
        assert settings.chain.root_validity_days == 3650
        assert settings.chain.intermediate_validity_days == 1825
        assert settings.chain.operational_validity_days == 365
        assert settings.chain.key_type == "rsa"
        assert settings.bundle.chain == "ca-chain.crt"
        assert settings.store.backend == "kubernetes"
        assert settings.rotation.cert_data_key == "ca.crt"
        assert settings.rotation.key_data_key == "ca.key"
        assert settings.rotation.cert_generation_annotation == "ca-cert-generation"
        assert settings.rotation.key_generation_annotation == "ca-key-generation"
        assert settings.rotation.baseline_generation == "0"
        assert settings.rotation.retain_superseded is False
        assert settings.logging.audit.enabled is True

    def test_none_is_defaults(self):
        assert build_settings(None) == build_settings({})

    def test_integer_baseline_normalised(self):
        assert build_settings({"rotation": {"baseline_generation": 3}}).rotation.baseline_generation == "3"

    def test_frozen(self):
        settings = build_settings({})
        with pytest.raises(AttributeError):
            settings.chain.key_type = "ec"
        with pytest.raises(TypeError):
            settings.rotation.extra_labels["x"] = "y"


class TestLoadConfig:
    def test_yaml(self, tmp_config_file):
        settings = load_config(tmp_config_file)
        assert settings.store.backend == "memory"
        assert settings.store.namespace == "ns1"
        assert settings.chain.key_type == "ec"

    def test_json(self, tmp_path, config_data):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config_data), encoding="utf-8")
        assert load_config(path).store.namespace == "ns1"

    def test_empty_yaml_is_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == build_settings({})

    def test_unparseable(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("chain: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="Could not parse"):
            load_config(path)

    def test_top_level_not_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text(yaml.safe_dump([1, 2]), encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="mapping"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


class TestEnvironmentVariables:
    def test_resolved(self, monkeypatch):
        monkeypatch.setenv("CAROTATE_NS", "kafka")
        settings = load_config_data({"store": {"namespace": "${CAROTATE_NS}"}})
        assert settings.store.namespace == "kafka"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("CAROTATE_NS", raising=False)
        settings = load_config_data({"store": {"namespace": "${CAROTATE_NS:-fallback}"}})
        assert settings.store.namespace == "fallback"

    def test_unset_without_default(self, monkeypatch):
        monkeypatch.delenv("CAROTATE_NS", raising=False)
        with pytest.raises(ConfigValidationError, match="CAROTATE_NS"):
            load_config_data({"store": {"namespace": "${CAROTATE_NS}"}})


class TestSchema:
    def test_unknown_key(self):
        with pytest.raises(ConfigValidationError, match="chain"):
            load_config_data({"chain": {"bogus": 1}})

    def test_reports_every_problem(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            load_config_data(
                {"chain": {"key_type": "dsa", "rsa_key_size": 1024}, "logging": {"format": "xml"}},
            )
        assert len(exc_info.value.errors) == 3


class TestCrossFieldValidation:
    def test_valid_defaults(self):
        assert collect_config_errors({}) == []

    def test_validity_ordering(self):
        errors = collect_config_errors(
            {"chain": {"root_validity_days": 10, "intermediate_validity_days": 20}},
        )
        assert any("intermediate_validity_days" in e for e in errors)

    def test_data_key_without_extension(self):
        errors = collect_config_errors({"rotation": {"cert_data_key": "cacrt"}})
        assert any("extension" in e for e in errors)

    def test_equal_data_keys(self):
        errors = collect_config_errors(
            {"rotation": {"cert_data_key": "ca.pem", "key_data_key": "ca.pem"}},
        )
        assert any("must differ" in e for e in errors)

    def test_equal_annotations(self):
        errors = collect_config_errors(
            {"rotation": {"cert_generation_annotation": "g", "key_generation_annotation": "g"}},
        )
        assert len(errors) == 1

    @pytest.mark.parametrize("baseline", ["-1", "abc", -2, "\u00b2", "\u0663"])
    def test_bad_baseline(self, baseline):
        errors = collect_config_errors({"rotation": {"baseline_generation": baseline}})
        assert any("baseline_generation" in e for e in errors)

    def test_extra_labels_cannot_shadow_cluster(self):
        errors = collect_config_errors({"rotation": {"extra_labels": {"cluster": "x"}}})
        assert any("cluster_label" in e for e in errors)

    def test_poll_interval_below_timeout(self):
        errors = collect_config_errors(
            {"store": {"wait_timeout_seconds": 1, "poll_interval_seconds": 5}},
        )
        assert any("poll_interval_seconds" in e for e in errors)

    def test_in_cluster_excludes_kubeconfig(self):
        errors = collect_config_errors(
            {"store": {"kubernetes": {"in_cluster": True, "kubeconfig": "/kc"}}},
        )
        assert len(errors) == 1

    def test_all_errors_collected(self):
        errors = collect_config_errors(
            {
                "chain": {"operational_validity_days": 5000},
                "rotation": {"baseline_generation": "x", "extra_labels": {"cluster": "c"}},
            },
        )
        assert len(errors) == 3

    def test_raised_by_loader(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            load_config_data({"rotation": {"baseline_generation": "x"}})
        assert "baseline_generation" in str(exc_info.value)
