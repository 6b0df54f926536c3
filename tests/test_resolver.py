import tempfile
import unittest
from pathlib import Path

from layered_config.errors import ConfigParseError, ConfigTypeError
from layered_config.models import AppConfig, ConfigLoadRequest, RedisMode, default_config
from layered_config.resolver import (
    LayeredConfigLoader,
    resolve_env_only,
    resolve_file_only,
    resolve_with_custom_prefix,
    resolve_with_env,
)

FILE_CONFIG = """
database:
  url: "postgres://file@localhost:5432/file"
  max_connections: 20
server:
  host: "127.0.0.1"
  port: 9000
jwt:
  jwt_secret: "file-secret"
redis:
  mode: cluster
  urls:
    - "redis://node1:7001"
    - "redis://node2:7002"
unknown_section:
  anything: true
"""


class ResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name)
        self.config_path = str(self.dir / "application.yaml")
        Path(self.config_path).write_text(FILE_CONFIG, encoding="utf-8")

    def test_defaults_without_sources(self) -> None:
        config = resolve_with_env(None, environ={})
        self.assertEqual(config, default_config())
        self.assertEqual(config.server.port, 8080)
        self.assertIs(config.redis.mode, RedisMode.SINGLE)

    def test_file_values_override_defaults(self) -> None:
        config = resolve_with_env(self.config_path, environ={})
        self.assertEqual(config.database.url, "postgres://file@localhost:5432/file")
        self.assertEqual(config.database.max_connections, 20)
        self.assertEqual(config.database.min_connections, 1)
        self.assertEqual(config.server.port, 9000)
        self.assertIs(config.redis.mode, RedisMode.CLUSTER)
        self.assertEqual(config.redis.urls, ("redis://node1:7001", "redis://node2:7002"))

    def test_environment_overrides_file(self) -> None:
        environ = {
            "APP_DATABASE_MAX_CONNECTIONS": "50",
            "APP_JWT_JWT_SECRET": "env-secret",
            "APP_MONGO_URI": "mongodb://env:27017/db",
        }
        config = resolve_with_env(self.config_path, environ=environ)
        self.assertEqual(config.database.max_connections, 50)
        self.assertEqual(config.database.url, "postgres://file@localhost:5432/file")
        self.assertEqual(config.jwt.jwt_secret, "env-secret")
        self.assertEqual(config.jwt.issuer, "layered-config")
        self.assertEqual(config.mongo.uri, "mongodb://env:27017/db")

    def test_server_port_scenario(self) -> None:
        path = self.dir / "port.yaml"
        path.write_text("server:\n  port: 9000\n", encoding="utf-8")

        from_file = resolve_with_env(str(path), environ={})
        self.assertEqual(from_file.server.port, 9000)

        with_env = resolve_with_env(str(path), environ={"APP_SERVER_PORT": "8080"})
        self.assertEqual(with_env.server.port, 8080)
        self.assertEqual(
            with_env.model_dump(exclude={"server"}),
            from_file.model_dump(exclude={"server"}),
        )
        self.assertEqual(with_env.server.host, from_file.server.host)

    def test_idempotent(self) -> None:
        environ = {"APP_SERVER_PORT": "8181", "APP_REDIS_URLS": "redis://a,redis://b"}
        first = resolve_with_env(self.config_path, environ=environ)
        second = resolve_with_env(self.config_path, environ=dict(environ))
        self.assertEqual(first, second)

    def test_unknown_variables_are_ignored(self) -> None:
        baseline = resolve_with_env(self.config_path, environ={})
        polluted = resolve_with_env(
            self.config_path,
            environ={"APP_UNKNOWN_FIELD": "x", "APP_SERVER_UNKNOWN": "y", "HOME": "/root"},
        )
        self.assertEqual(baseline, polluted)

    def test_absent_file_matches_env_only(self) -> None:
        environ = {"APP_SERVER_HOST": "10.0.0.1", "APP_REDIS_MODE": "cluster"}
        self.assertEqual(
            resolve_with_env(None, environ=environ),
            resolve_env_only(environ=environ),
        )
        self.assertEqual(
            resolve_with_env(str(self.dir / "missing.yaml"), environ=environ),
            resolve_env_only(environ=environ),
        )

    def test_env_only_skips_file(self) -> None:
        config = resolve_env_only(environ={"APP_SERVER_PORT": "1234"})
        self.assertEqual(config.server.port, 1234)
        self.assertEqual(config.database.max_connections, 10)

    def test_file_only_ignores_environment(self) -> None:
        config = resolve_file_only(self.config_path)
        self.assertEqual(config.server.port, 9000)

    def test_custom_prefix(self) -> None:
        environ = {"APP_SERVER_PORT": "1111", "MYAPP_SERVER_PORT": "2222"}
        config = resolve_with_custom_prefix(self.config_path, "MYAPP", environ=environ)
        self.assertEqual(config.server.port, 2222)

    def test_integer_type_error_from_environment(self) -> None:
        config = resolve_env_only(environ={"APP_DATABASE_MAX_CONNECTIONS": "10"})
        self.assertEqual(config.database.max_connections, 10)

        with self.assertRaises(ConfigTypeError) as cm:
            resolve_env_only(environ={"APP_DATABASE_MAX_CONNECTIONS": "ten"})
        self.assertEqual(cm.exception.path, "database.max_connections")
        self.assertEqual(cm.exception.raw_value, "ten")
        self.assertEqual(cm.exception.expected, "integer")

    def test_type_error_from_file(self) -> None:
        path = self.dir / "bad.yaml"
        path.write_text("server:\n  port: eighty\n", encoding="utf-8")
        with self.assertRaises(ConfigTypeError) as cm:
            resolve_with_env(str(path), environ={})
        self.assertEqual(cm.exception.path, "server.port")

    def test_file_integer_flag_for_boolean(self) -> None:
        path = self.dir / "flags.yaml"
        path.write_text("s3:\n  force_path_style: 1\n", encoding="utf-8")
        self.assertTrue(resolve_with_env(str(path), environ={}).s3.force_path_style)
        path.write_text("s3:\n  force_path_style: 0\n", encoding="utf-8")
        self.assertFalse(resolve_with_env(str(path), environ={}).s3.force_path_style)

    def test_file_boolean_for_string_field(self) -> None:
        path = self.dir / "issuer.yaml"
        path.write_text("jwt:\n  issuer: true\n", encoding="utf-8")
        self.assertEqual(resolve_with_env(str(path), environ={}).jwt.issuer, "true")

    def test_file_type_error_fails_even_when_environment_overrides(self) -> None:
        path = self.dir / "bad.yaml"
        path.write_text("server:\n  port: eighty\n", encoding="utf-8")
        with self.assertRaises(ConfigTypeError):
            resolve_with_env(str(path), environ={"APP_SERVER_PORT": "80"})

    def test_redis_mode(self) -> None:
        for raw in ("single", "SINGLE"):
            with self.subTest(raw=raw):
                config = resolve_env_only(environ={"APP_REDIS_MODE": raw})
                self.assertIs(config.redis.mode, RedisMode.SINGLE)
        with self.assertRaises(ConfigTypeError):
            resolve_env_only(environ={"APP_REDIS_MODE": "bogus"})

    def test_redis_urls(self) -> None:
        config = resolve_env_only(environ={"APP_REDIS_URLS": "redis://a,redis://b"})
        self.assertEqual(config.redis.urls, ("redis://a", "redis://b"))

        config = resolve_with_env(self.config_path, environ={"APP_REDIS_URLS": ""})
        self.assertEqual(config.redis.urls, ())

    def test_redis_helpers(self) -> None:
        single = resolve_env_only(environ={"APP_REDIS_URL": "redis://one:6379/0"})
        self.assertFalse(single.redis.is_cluster())
        self.assertEqual(single.redis.get_url(), "redis://one:6379/0")
        self.assertIsNone(single.redis.get_urls())

        cluster = resolve_with_env(self.config_path, environ={})
        self.assertTrue(cluster.redis.is_cluster())
        self.assertIsNone(cluster.redis.get_url())
        self.assertEqual(cluster.redis.get_urls(), ("redis://node1:7001", "redis://node2:7002"))

    def test_malformed_file_aborts(self) -> None:
        path = self.dir / "broken.yaml"
        path.write_text("server: [\n", encoding="utf-8")
        with self.assertRaises(ConfigParseError):
            resolve_with_env(str(path), environ={"APP_SERVER_PORT": "8080"})

    def test_result_is_immutable(self) -> None:
        config = resolve_env_only(environ={})
        with self.assertRaises(Exception):
            config.server.port = 1  # type: ignore[misc]

    def test_dotenv_file(self) -> None:
        dotenv = self.dir / ".env"
        dotenv.write_text("APP_SERVER_PORT=7000\n", encoding="utf-8")
        config = resolve_with_env(self.config_path, environ={}, dotenv_path=str(dotenv))
        self.assertEqual(config.server.port, 7000)

        config = resolve_with_env(self.config_path, environ={"APP_SERVER_PORT": "7100"}, dotenv_path=str(dotenv))
        self.assertEqual(config.server.port, 7100)


class LayeredConfigLoaderTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.config_path = str(Path(self.tmp.name) / "application.yaml")
        Path(self.config_path).write_text("server:\n  port: 9000\n", encoding="utf-8")

    async def asyncTearDown(self) -> None:
        self.tmp.cleanup()

    async def test_with_env_mode(self) -> None:
        loader = LayeredConfigLoader(environ={"APP_SERVER_HOST": "env-host"})
        config = await loader.load(ConfigLoadRequest(file_path=self.config_path, dotenv_path=None))
        self.assertIsInstance(config, AppConfig)
        self.assertEqual(config.server.port, 9000)
        self.assertEqual(config.server.host, "env-host")

    async def test_env_only_mode(self) -> None:
        loader = LayeredConfigLoader(environ={"APP_SERVER_HOST": "env-host"})
        config = await loader.load(
            ConfigLoadRequest(file_path=self.config_path, dotenv_path=None, mode="env_only")
        )
        self.assertEqual(config.server.port, 8080)
        self.assertEqual(config.server.host, "env-host")

    async def test_file_only_mode(self) -> None:
        loader = LayeredConfigLoader(environ={"APP_SERVER_PORT": "1"})
        config = await loader.load(ConfigLoadRequest(file_path=self.config_path, mode="file_only"))
        self.assertEqual(config.server.port, 9000)

    async def test_custom_prefix(self) -> None:
        loader = LayeredConfigLoader(environ={"SVC_SERVER_PORT": "7777"})
        config = await loader.load(
            ConfigLoadRequest(file_path=self.config_path, env_prefix="SVC", dotenv_path=None)
        )
        self.assertEqual(config.server.port, 7777)


if __name__ == "__main__":
    unittest.main()
