"""Tests for per-backend configuration schemas."""

from __future__ import annotations

import pytest

from fedns.fs.backend_config import (
    CONFIG_SCHEMAS,
    GCSConnectorConfig,
    GDriveConnectorConfig,
    LocalConnectorConfig,
    MemoryConfig,
    OpaqueConfig,
    S3Config,
    is_connector_type,
    parse_backend_config,
)
from fedns.fs.exceptions import ValidationError
from fedns.fs.types import SavedMount


class TestParse:
    def test_gcs(self):
        config = parse_backend_config("gcs_connector", {"bucket": "b", "project_id": "p"})
        assert isinstance(config, GCSConnectorConfig)
        assert config.prefix == ""

    def test_gcs_missing_bucket(self):
        with pytest.raises(ValidationError, match="gcs_connector"):
            parse_backend_config("gcs_connector", {"project_id": "p"})

    def test_s3_region_optional(self):
        config = parse_backend_config("s3", {"bucket": "b"})
        assert isinstance(config, S3Config)
        assert config.to_wire() == {"bucket": "b", "prefix": ""}

    def test_gdrive_defaults(self):
        config = parse_backend_config("gdrive_connector", {"user_email": "a@example.com"})
        assert isinstance(config, GDriveConnectorConfig)
        assert config.root_folder == "nexus-data"
        assert config.provider == "google-drive"

    def test_local_connector(self):
        config = parse_backend_config("local_connector", {"root_path": "/srv/data"})
        assert isinstance(config, LocalConnectorConfig)

    def test_memory_none(self):
        assert isinstance(parse_backend_config("memory", None), MemoryConfig)

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            parse_backend_config("s3", {"bucket": "b", "buckt": "typo"})

    def test_unknown_type_passes_through(self):
        config = parse_backend_config("ftp", {"host": "ftp.example.com", "port": 21})
        assert isinstance(config, OpaqueConfig)
        assert config.to_wire() == {"host": "ftp.example.com", "port": 21}

    @pytest.mark.parametrize("backend_type", ["", "   "])
    def test_type_required(self, backend_type):
        with pytest.raises(ValidationError):
            parse_backend_config(backend_type, {})

    def test_configs_frozen(self):
        config = parse_backend_config("s3", {"bucket": "b"})
        with pytest.raises(Exception):  # noqa: B017
            config.bucket = "other"  # type: ignore[misc]

    def test_registry_keys(self):
        assert set(CONFIG_SCHEMAS) == {
            "memory",
            "local",
            "local_connector",
            "gcs_connector",
            "s3",
            "gdrive_connector",
        }


class TestConnectorTypes:
    @pytest.mark.parametrize("backend_type", ["gcs_connector", "local_connector", "gcs"])
    def test_connectors(self, backend_type):
        assert is_connector_type(backend_type)

    @pytest.mark.parametrize("backend_type", ["memory", "local", "s3"])
    def test_non_connectors(self, backend_type):
        assert not is_connector_type(backend_type)


class TestSavedMountTypedConfig:
    def test_typed_config(self):
        saved = SavedMount("/mnt/s3", "s3", {"bucket": "b", "region": "eu-west-1"})
        config = saved.typed_config()
        assert isinstance(config, S3Config)
        assert config.region == "eu-west-1"

    def test_typed_config_invalid(self):
        with pytest.raises(ValidationError):
            SavedMount("/mnt/s3", "s3", {}).typed_config()
