"""
Tests for environment and config-file driven settings.
"""

import os
from pathlib import Path

import pytest

from logjam.config import DecoderSettings, DispatcherSettings, Settings, load_config_file, reload_settings
from logjam.models import BackpressurePolicy, FieldType, QueryRepeatPolicy


class TestSettings:
    """Test settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LOGJAM_TOKENS", raising=False)
        settings = Settings()

        assert settings.tokens == ""
        assert settings.port == 1323
        assert settings.token_header == "x-logjam-token"
        assert settings.allow_empty_token is False
        assert settings.query_repeat_policy is QueryRepeatPolicy.LAST
        assert settings.decoder.max_body_bytes == 1048576
        assert settings.decoder.multi_strict is True
        assert settings.dispatcher.backpressure is BackpressurePolicy.REJECT
        assert settings.dispatcher.sinks == ["console"]

    def test_tokens_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOGJAM_TOKENS", "alpha,beta")

        assert Settings().tokens == "alpha,beta"

    def test_nested_settings_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOGJAM_DECODER_MAX_BODY_BYTES", "2048")
        monkeypatch.setenv("LOGJAM_DECODER_RECORD_SCHEMA", '{"level": "string"}')
        monkeypatch.setenv("LOGJAM_DISPATCHER_BACKPRESSURE", "drop")
        monkeypatch.setenv("LOGJAM_DISPATCHER_SINKS", '["console", "log"]')

        settings = Settings()

        assert settings.decoder.max_body_bytes == 2048
        assert settings.decoder.record_schema == {"level": FieldType.STRING}
        assert settings.dispatcher.backpressure is BackpressurePolicy.DROP
        assert settings.dispatcher.sinks == ["console", "log"]

    def test_record_schema_from_json_string(self) -> None:
        decoder = DecoderSettings(record_schema='{"count": "integer"}')

        assert decoder.record_schema == {"count": FieldType.INTEGER}

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_blank_record_schema_string_means_any_fields(self, raw: str) -> None:
        assert DecoderSettings(record_schema=raw).record_schema == {}

    def test_deliver_timeout_is_finite_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LOGJAM_DISPATCHER_DELIVER_TIMEOUT_SECONDS", raising=False)

        assert DispatcherSettings().deliver_timeout_seconds == 30.0

    def test_invalid_schema_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            DecoderSettings(record_schema={"count": "decimal"})

    def test_media_types_are_normalized(self) -> None:
        decoder = DecoderSettings(accepted_media_types=[" Application/JSON "])

        assert decoder.accepted_media_types == ["application/json"]

    def test_empty_media_types_rejected(self) -> None:
        with pytest.raises(ValueError):
            DecoderSettings(accepted_media_types=[])

    def test_invalid_worker_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            DispatcherSettings(workers=0)


class TestConfigFile:
    """Test YAML config file loading."""

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_config_file(str(tmp_path / "absent.yaml")) == {}

    def test_yaml_values_become_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "server:\n"
            "  port: 9000\n"
            "security:\n"
            "  tokens: [alpha, beta]\n"
            "dispatcher:\n"
            "  workers: 7\n"
            "  sinks: [log]\n"
        )
        for name in ("LOGJAM_PORT", "LOGJAM_TOKENS", "LOGJAM_DISPATCHER_WORKERS", "LOGJAM_DISPATCHER_SINKS"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("LOGJAM_CONFIG_FILE", str(config_file))

        try:
            settings = reload_settings()
        finally:
            # get_settings writes env vars from the file; drop them with the cache
            for name in ("LOGJAM_PORT", "LOGJAM_TOKENS", "LOGJAM_DISPATCHER_WORKERS", "LOGJAM_DISPATCHER_SINKS"):
                os.environ.pop(name, None)
            monkeypatch.delenv("LOGJAM_CONFIG_FILE", raising=False)
            reload_settings()

        assert settings.port == 9000
        assert settings.tokens == "alpha,beta"
        assert settings.dispatcher.workers == 7
        assert settings.dispatcher.sinks == ["log"]

    def test_environment_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("server:\n  port: 9000\n")
        monkeypatch.setenv("LOGJAM_PORT", "9100")
        monkeypatch.setenv("LOGJAM_CONFIG_FILE", str(config_file))

        try:
            settings = reload_settings()
        finally:
            monkeypatch.delenv("LOGJAM_CONFIG_FILE", raising=False)
            reload_settings()

        assert settings.port == 9100
