"""Tests for the soft delete configuration."""

import json

import pytest
from pydantic import ValidationError

from softdelete_toolkit.config import SoftDeleteConfig


class TestDefaults:
    def test_default_values(self):
        config = SoftDeleteConfig()

        assert config.application_name == "softdelete"
        assert config.max_cascade_depth == 20
        assert config.stop_on_first_error is True
        assert config.not_found_is_error is True
        assert config.concurrency_retries == 0
        assert config.audit_enabled is True

    def test_config_is_frozen(self):
        config = SoftDeleteConfig()

        with pytest.raises(ValidationError):
            config.max_cascade_depth = 5

    def test_to_dict(self):
        assert SoftDeleteConfig(concurrency_retries=2).to_dict()[
            "concurrency_retries"
        ] == 2


class TestValidation:
    @pytest.mark.parametrize("depth", [0, -1, 1001])
    def test_depth_bounds(self, depth):
        with pytest.raises(ValidationError):
            SoftDeleteConfig(max_cascade_depth=depth)

    def test_retry_bounds(self):
        with pytest.raises(ValidationError):
            SoftDeleteConfig(concurrency_retries=11)

    def test_blank_application_name(self):
        with pytest.raises(ValidationError, match="cannot be blank"):
            SoftDeleteConfig(application_name="   ")

    def test_application_name_is_stripped(self):
        assert SoftDeleteConfig(application_name=" crm ").application_name == "crm"

    def test_unknown_setting(self):
        with pytest.raises(ValidationError):
            SoftDeleteConfig(max_depth=3)


class TestFromEnv:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("SOFTDELETE_MAX_CASCADE_DEPTH", "7")
        monkeypatch.setenv("SOFTDELETE_STOP_ON_FIRST_ERROR", "false")
        monkeypatch.setenv("SOFTDELETE_AUDIT_ENABLED", "yes")

        config = SoftDeleteConfig.from_env()

        assert config.max_cascade_depth == 7
        assert config.stop_on_first_error is False
        assert config.audit_enabled is True

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("CRM_CONCURRENCY_RETRIES", "3")

        assert SoftDeleteConfig.from_env(prefix="CRM_").concurrency_retries == 3

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("SOFTDELETE_MAX_CASCADE_DEPTH", "deep")

        with pytest.raises(ValidationError):
            SoftDeleteConfig.from_env()


class TestFromFile:
    def test_json_file(self, tmp_path):
        path = tmp_path / "softdelete.json"
        path.write_text(json.dumps({"max_cascade_depth": 5}))

        assert SoftDeleteConfig.from_file(path).max_cascade_depth == 5

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "softdelete.yaml"
        path.write_text("not_found_is_error: false\nconcurrency_retries: 1\n")

        config = SoftDeleteConfig.from_file(str(path))

        assert config.not_found_is_error is False
        assert config.concurrency_retries == 1

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "softdelete.yml"
        path.write_text("")

        assert SoftDeleteConfig.from_file(path) == SoftDeleteConfig()

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "softdelete.ini"
        path.write_text("[softdelete]")

        with pytest.raises(ValueError, match="Unsupported"):
            SoftDeleteConfig.from_file(path)

    def test_content_must_be_mapping(self, tmp_path):
        path = tmp_path / "softdelete.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError, match="mapping"):
            SoftDeleteConfig.from_file(path)
