"""
Test: configuration loading (config.py)
"""

import json

import pytest

from accipiter.config import ConfigLoader, RoutingConfig, ServerConfig, import_string
from accipiter.faults import ConfigInvalidFault
from accipiter.middleware import LoggingMiddleware


class TestDefaults:

    def test_routing_defaults(self):
        loader = ConfigLoader.load(environ={})
        assert loader.routing() == RoutingConfig()

    def test_server_defaults(self):
        loader = ConfigLoader.load(environ={})
        assert loader.server() == ServerConfig()


class TestSources:

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "accipiter.yaml"
        path.write_text("routing:\n  prefix: /api\n  debug: true\nserver:\n  port: 9000\n")

        loader = ConfigLoader.load(paths=[str(path)], environ={})
        assert loader.routing().prefix == "/api"
        assert loader.routing().debug is True
        assert loader.server().port == 9000

    def test_json_file(self, tmp_path):
        path = tmp_path / "accipiter.json"
        path.write_text(json.dumps({"routing": {"prefix": "/v1"}}))

        assert ConfigLoader.load(paths=[str(path)], environ={}).routing().prefix == "/v1"

    def test_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text('ACCIPITER_ROUTING__PREFIX="/from-dotenv"\nOTHER=ignored\n')

        loader = ConfigLoader.load(env_file=str(env), environ={})
        assert loader.routing().prefix == "/from-dotenv"
        assert loader.get("other") is None

    def test_environment_variables(self):
        loader = ConfigLoader.load(environ={
            "ACCIPITER_ROUTING__DEBUG": "yes",
            "ACCIPITER_SERVER__PORT": "8080",
            "UNRELATED": "x",
        })
        assert loader.routing().debug is True
        assert loader.server().port == 8080

    def test_missing_env_file_is_ignored(self, tmp_path):
        loader = ConfigLoader.load(env_file=str(tmp_path / "nope.env"), environ={})
        assert loader.routing().prefix == ""

    def test_missing_config_file_is_an_error(self, tmp_path):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(paths=[str(tmp_path / "missing.yaml")], environ={})


class TestPrecedence:

    def test_file_then_dotenv_then_env_then_overrides(self, tmp_path):
        yaml_path = tmp_path / "accipiter.yaml"
        yaml_path.write_text("routing:\n  prefix: /file\n  debug: false\nserver:\n  host: 0.0.0.0\n")
        env = tmp_path / ".env"
        env.write_text("ACCIPITER_ROUTING__PREFIX=/dotenv\nACCIPITER_SERVER__PORT=7000\n")

        loader = ConfigLoader.load(
            paths=[str(yaml_path)],
            env_file=str(env),
            environ={"ACCIPITER_SERVER__PORT": "7500", "ACCIPITER_ROUTING__DEBUG": "true"},
            overrides={"routing": {"prefix": "/override"}},
        )

        routing = loader.routing()
        server = loader.server()
        assert routing.prefix == "/override"
        assert routing.debug is True
        assert server.port == 7500
        assert server.host == "0.0.0.0"


class TestValidation:

    def test_unknown_key_rejected(self):
        loader = ConfigLoader.load(environ={}, overrides={"routing": {"prefx": "/typo"}})
        with pytest.raises(ConfigInvalidFault) as exc_info:
            loader.routing()
        assert "prefx" in exc_info.value.message

    def test_port_out_of_range(self):
        loader = ConfigLoader.load(environ={"ACCIPITER_SERVER__PORT": "70000"})
        with pytest.raises(ConfigInvalidFault):
            loader.server()

    def test_bad_port_type(self):
        loader = ConfigLoader.load(environ={}, overrides={"server": {"port": "eighty"}})
        with pytest.raises(ConfigInvalidFault):
            loader.server()

    @pytest.mark.parametrize("raw, expected", [
        ("1", True),
        ("0", False),
        ("true", True),
        ("Off", False),
        ("", False),
        (1, True),
    ])
    def test_bool_from_string_override(self, raw, expected):
        loader = ConfigLoader.load(environ={}, overrides={"routing": {"debug": raw}})
        assert loader.routing().debug is expected

    def test_bool_rejects_words(self):
        loader = ConfigLoader.load(environ={}, overrides={"routing": {"debug": "maybe"}})
        with pytest.raises(ConfigInvalidFault):
            loader.routing()

    def test_global_middleware_from_comma_list(self):
        loader = ConfigLoader.load(environ={
            "ACCIPITER_ROUTING__GLOBAL_MIDDLEWARE": "accipiter.middleware:LoggingMiddleware",
        })
        routing = loader.routing()
        assert routing.global_middleware == ["accipiter.middleware:LoggingMiddleware"]
        assert routing.resolve_middleware() == [LoggingMiddleware]


class TestImportString:

    def test_colon_form(self):
        assert import_string("accipiter.middleware:LoggingMiddleware") is LoggingMiddleware

    def test_dotted_form(self):
        assert import_string("accipiter.middleware.LoggingMiddleware") is LoggingMiddleware

    def test_missing_module(self):
        with pytest.raises(ConfigInvalidFault):
            import_string("accipiter.nope:thing")

    def test_missing_attribute(self):
        with pytest.raises(ConfigInvalidFault):
            import_string("accipiter.middleware:Nope")
