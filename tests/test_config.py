"""Tests for config module."""

import pytest

from access_log_exporter.config import (
    Config,
    _parse_bool,
    _parse_labels,
    _parse_paths,
    load_config,
    load_yaml_config,
)

ENV_VARS = (
    "ACCESS_LOG_PATH", "EXPORT_HOST", "EXPORT_PORT", "LOG_POLLING_PERIOD",
    "ROTATION_CHECK_PERIOD", "LOG_FORMAT", "DETAILED_PATHS", "CUSTOM_LABELS",
    "USE_SYSLOG", "LOG_LEVEL", "EXPORTER_CONFIG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestParseHelpers:
    @pytest.mark.parametrize("value", ["true", "True", "1", "yes", " YES ", True])
    def test_truthy(self, value):
        assert _parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "", False])
    def test_falsy(self, value):
        assert _parse_bool(value) is False

    def test_paths_from_string_and_list(self):
        assert _parse_paths("/foo, /bar") == ("/foo", "/bar")
        assert _parse_paths(["/foo", "/bar"]) == ("/foo", "/bar")
        assert _parse_paths("") == ()

    @pytest.mark.parametrize("value", [["/foo bar"], [""]])
    def test_invalid_paths_rejected(self, value):
        with pytest.raises(ValueError):
            _parse_paths(value)

    def test_labels(self):
        assert _parse_labels("zone=us-east1-b,instance_id=web-1") == {
            "zone": "us-east1-b", "instance_id": "web-1",
        }
        assert _parse_labels({"zone": "eu"}) == {"zone": "eu"}
        assert _parse_labels("") == {}

    def test_malformed_label_rejected(self):
        with pytest.raises(ValueError, match="key=value"):
            _parse_labels("zone")


class TestConfigDefaults:
    def test_defaults(self):
        cfg = Config()
        assert cfg.export_host == "0.0.0.0"
        assert cfg.export_port == 9091
        assert cfg.log_polling_period == 30.0
        assert cfg.rotation_check_period == 60.0
        assert cfg.log_format == "json"
        assert cfg.detailed_paths == ()
        assert cfg.custom_labels == {}
        assert cfg.use_syslog is False

    def test_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.export_port = 1234


class TestLoadConfig:
    def test_cli(self):
        cfg = load_config([
            "--access-log-path", "/var/log/nginx/access.log",
            "--export-port", "9200",
            "--log-polling-period", "5",
            "--log-format", "CLF",
            "--detailed-paths", "/foo,/bar",
            "--custom-labels", "zone=a",
            "--use-syslog",
        ])
        assert cfg.access_log_path == "/var/log/nginx/access.log"
        assert cfg.export_port == 9200
        assert cfg.log_polling_period == 5.0
        assert cfg.log_format == "clf"
        assert cfg.detailed_paths == ("/foo", "/bar")
        assert cfg.custom_labels == {"zone": "a"}
        assert cfg.use_syslog is True

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("ACCESS_LOG_PATH", "/env/access.log")
        monkeypatch.setenv("ROTATION_CHECK_PERIOD", "15")
        monkeypatch.setenv("USE_SYSLOG", "true")
        cfg = load_config([])
        assert cfg.access_log_path == "/env/access.log"
        assert cfg.rotation_check_period == 15.0
        assert cfg.use_syslog is True

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("ACCESS_LOG_PATH", "/env/access.log")
        cfg = load_config(["--access-log-path", "/cli/access.log"])
        assert cfg.access_log_path == "/cli/access.log"

    def test_yaml_file(self, tmp_path, monkeypatch):
        f = tmp_path / "exporter.yml"
        f.write_text(
            "access_log_path: /yaml/access.log\n"
            "log_format: clf\n"
            "detailed_paths:\n  - /foo\n  - /bar\n"
            "custom_labels:\n  zone: us-east1-b\n"
        )
        cfg = load_config(["--config", str(f)])
        assert cfg.access_log_path == "/yaml/access.log"
        assert cfg.log_format == "clf"
        assert cfg.detailed_paths == ("/foo", "/bar")
        assert cfg.custom_labels == {"zone": "us-east1-b"}

        monkeypatch.setenv("LOG_FORMAT", "json")
        assert load_config(["--config", str(f)]).log_format == "json"

    def test_missing_yaml_file_uses_defaults(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "missing.yml")) == {}
        assert load_yaml_config(None) == {}

    def test_path_required(self):
        with pytest.raises(ValueError, match="access log path"):
            load_config([])

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError, match="Unsupported log format"):
            load_config(["--access-log-path", "/x.log", "--log-format", "xml"])

    def test_non_positive_period_rejected(self):
        with pytest.raises(ValueError):
            load_config(["--access-log-path", "/x.log", "--log-polling-period", "0"])
