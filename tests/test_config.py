"""
Tests for checkrelay.config module
"""

import pytest


class TestDefaults:
    """Tests for built-in defaults."""

    def test_server_defaults(self, clean_env):
        from checkrelay.config import ServerConfig

        config = ServerConfig()

        assert config.listen_address == ":8080"
        assert config.registry_address == "localhost:8500"
        assert config.shutdown_timeout == 15.0
        assert config.default_threshold == "passing"
        assert config.severity_scale == "four-level"

    def test_client_defaults(self, clean_env):
        from checkrelay.config import ClientConfig

        config = ClientConfig()

        assert config.query_timeout == 5.0
        assert config.query_max_idle_connection_count == 100
        assert config.query_idle_connection_timeout == 90.0

    def test_cache_default(self, clean_env):
        from checkrelay.config import CacheConfig

        assert CacheConfig().registry_cache_duration == 1.0

    def test_status_code_defaults(self, clean_env):
        from checkrelay.config import StatusCodes

        codes = StatusCodes()

        assert codes.success == 200
        assert codes.partial_success == 200
        assert codes.warning == 429
        assert codes.error == 500
        assert codes.bad_request == 400
        assert codes.no_checks == 404
        assert codes.unprocessable == 422
        assert codes.registry_unavailable == 503


class TestEnvironment:
    """Tests for CHECKRELAY_* overrides."""

    def test_server_env(self, clean_env):
        from checkrelay.config import ServerConfig

        clean_env["CHECKRELAY_REGISTRY_ADDRESS"] = "consul:8500"
        clean_env["CHECKRELAY_SHUTDOWN_TIMEOUT"] = "3"
        clean_env["CHECKRELAY_LOG_JSON"] = "false"

        config = ServerConfig()

        assert config.registry_address == "consul:8500"
        assert config.shutdown_timeout == 3.0
        assert config.log_json is False

    def test_nested_env(self, clean_env):
        from checkrelay.config import ServerConfig

        clean_env["CHECKRELAY_QUERY_MAX_IDLE_CONNECTION_COUNT"] = "10"
        clean_env["CHECKRELAY_REGISTRY_CACHE_DURATION"] = "0"
        clean_env["CHECKRELAY_NO_CHECKS_STATUS_CODE"] = "200"

        config = ServerConfig()

        assert config.client.query_max_idle_connection_count == 10
        assert config.cache.registry_cache_duration == 0.0
        assert config.status_codes.no_checks == 200

    def test_invalid_number(self, clean_env):
        from checkrelay.config import ClientConfig

        clean_env["CHECKRELAY_QUERY_TIMEOUT"] = "soon"

        with pytest.raises(ValueError):
            ClientConfig()


class TestRegistryUrl:
    """Tests for registry URL construction."""

    def test_host_port(self, clean_env):
        from checkrelay.config import ServerConfig

        config = ServerConfig(registry_address="localhost:8500")

        assert config.registry_checks_url == "http://localhost:8500/v1/agent/checks"

    def test_keeps_scheme(self, clean_env):
        from checkrelay.config import ServerConfig

        config = ServerConfig(registry_address="https://consul.internal/")

        assert config.registry_checks_url == "https://consul.internal/v1/agent/checks"


class TestExplicitValues:
    """Tests for constructor arguments versus the environment."""

    def test_explicit_status_code_beats_environment(self, clean_env):
        from checkrelay.config import StatusCodes

        clean_env["CHECKRELAY_SUCCESS_STATUS_CODE"] = "299"
        clean_env["CHECKRELAY_ERROR_STATUS_CODE"] = "599"

        codes = StatusCodes(success=207)

        assert codes.success == 207
        assert codes.error == 599

    def test_independent_mappings(self, clean_env):
        from checkrelay.config import StatusCodes

        clean_env["CHECKRELAY_BAD_REQUEST_STATUS_CODE"] = "499"

        assert StatusCodes(bad_request=418).bad_request == 418
        assert StatusCodes().bad_request == 499

    def test_explicit_server_value_beats_environment(self, clean_env):
        from checkrelay.config import ServerConfig

        clean_env["CHECKRELAY_REGISTRY_ADDRESS"] = "env:8500"

        assert ServerConfig(registry_address="arg:8500").registry_address == "arg:8500"


class TestValidate:
    """Tests for configuration validation."""

    def test_defaults_are_valid(self, clean_env):
        from checkrelay.config import ServerConfig

        config = ServerConfig()

        assert config.validate() is config

    def test_unknown_threshold(self, clean_env):
        from checkrelay.config import ServerConfig

        with pytest.raises(ValueError, match="Unsupported default threshold: bogus"):
            ServerConfig(default_threshold="bogus").validate()

    def test_unknown_scale(self, clean_env):
        from checkrelay.config import ServerConfig

        with pytest.raises(ValueError, match="Unknown severity scale"):
            ServerConfig(severity_scale="five-level").validate()

    def test_threshold_checked_against_scale(self, clean_env):
        from checkrelay.config import ServerConfig

        config = ServerConfig(severity_scale="three-level", default_threshold="maintenance")

        with pytest.raises(ValueError, match="expected one of passing, warning, critical"):
            config.validate()


class TestListenAddress:
    """Tests for listen address parsing."""

    def test_port_only(self, clean_env):
        from checkrelay.config import ServerConfig

        assert ServerConfig(listen_address=":9000").listen_host_port() == ("0.0.0.0", 9000)

    def test_host_and_port(self, clean_env):
        from checkrelay.config import ServerConfig

        assert ServerConfig(listen_address="127.0.0.1:80").listen_host_port() == ("127.0.0.1", 80)

    def test_missing_port(self, clean_env):
        from checkrelay.config import ServerConfig

        with pytest.raises(ValueError, match="Invalid listen address"):
            ServerConfig(listen_address="localhost:").listen_host_port()


class TestConfigFile:
    """Tests for YAML config loading."""

    def test_load_explicit_file(self, clean_env, tmp_path):
        from checkrelay.config import load_config

        path = tmp_path / "relay.yaml"
        path.write_text(
            "registry_address: consul:8500\n"
            "default-threshold: warning\n"
            "client:\n"
            "  query_timeout: 2\n"
            "cache:\n"
            "  registry_cache_duration: 0\n"
            "status_codes:\n"
            "  warning: 503\n"
        )

        config = load_config(str(path))

        assert config.registry_address == "consul:8500"
        assert config.default_threshold == "warning"
        assert config.client.query_timeout == 2.0
        assert isinstance(config.client.query_timeout, float)
        assert config.cache.registry_cache_duration == 0.0
        assert config.status_codes.warning == 503

    def test_file_overrides_environment(self, clean_env, tmp_path):
        from checkrelay.config import load_config

        clean_env["CHECKRELAY_LISTEN_ADDRESS"] = ":7000"
        clean_env["CHECKRELAY_REGISTRY_ADDRESS"] = "env:8500"
        path = tmp_path / "relay.yaml"
        path.write_text("registry_address: file:8500\n")

        config = load_config(str(path))

        assert config.registry_address == "file:8500"
        assert config.listen_address == ":7000"

    def test_default_file_in_working_directory(self, clean_env, tmp_path, monkeypatch):
        from checkrelay.config import load_config

        (tmp_path / ".checkrelay.yaml").write_text("listen_address: ':9999'\n")
        monkeypatch.chdir(tmp_path)

        assert load_config().listen_address == ":9999"

    def test_no_default_file(self, clean_env, tmp_path, monkeypatch):
        from checkrelay.config import load_config

        monkeypatch.chdir(tmp_path)

        assert load_config().listen_address == ":8080"

    def test_empty_file(self, clean_env, tmp_path):
        from checkrelay.config import load_config

        path = tmp_path / "relay.yaml"
        path.write_text("")

        assert load_config(str(path)).registry_address == "localhost:8500"

    def test_missing_explicit_file(self, clean_env, tmp_path):
        from checkrelay.config import load_config

        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_unknown_key(self, clean_env, tmp_path):
        from checkrelay.config import load_config

        path = tmp_path / "relay.yaml"
        path.write_text("registry_adress: consul:8500\n")

        with pytest.raises(ValueError, match="Unknown config key: registry_adress"):
            load_config(str(path))

    def test_section_must_be_mapping(self, clean_env):
        from checkrelay.config import ServerConfig

        with pytest.raises(ValueError, match="must be a mapping"):
            ServerConfig().apply({"client": 5})

    def test_not_a_mapping(self, clean_env, tmp_path):
        from checkrelay.config import load_config

        path = tmp_path / "relay.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            load_config(str(path))
