from pathlib import Path

import pytest

from rpbridge.client import InMemoryClient, ReportPortalClient, create_client
from rpbridge.config import dry_run_config, interpolate_env, load_config, validate_config_yaml
from rpbridge.reporting import Attribute, LaunchMode

VALID = """
version: 1
server:
  endpoint: https://rp.example.com/
  project: shop
  token: "{{env.RP_TOKEN}}"
  timeout_ms: 5000
launch:
  name: Nightly regression
  attributes:
    - key: team
      value: qa
    - value: smoke
reporter:
  screenshot_dir: shots
  drain_timeout_s: 10
"""


def errors_at(result) -> set[str]:
    return {e.path for e in result.errors}


def test_valid_config_is_parsed():
    config, result = validate_config_yaml(VALID, env={"RP_TOKEN": "s3cret"})

    assert result.is_valid, str(result)
    assert config.server.token == "s3cret"
    assert config.server.timeout_ms == 5000
    assert config.server.api_base == "https://rp.example.com/api/v1/shop"
    assert config.launch.mode == LaunchMode.DEFAULT
    assert config.launch.attributes == [Attribute("team", "qa"), Attribute(None, "smoke")]
    assert config.reporter.screenshot_dir == Path("shots")
    assert config.reporter.drain_timeout_s == 10.0
    assert not config.dry_run


def test_unknown_env_placeholder_is_left_visible():
    config, _ = validate_config_yaml(VALID, env={})

    assert config.server.token == "{{env.RP_TOKEN}}"


def test_interpolation_is_recursive():
    value = {"a": ["{{env.X}}-{{env.Y}}", 3], "b": "{{env.X}}"}

    assert interpolate_env(value, {"X": "1", "Y": "2"}) == {"a": ["1-2", 3], "b": "1"}


def test_server_is_required_unless_dry_run():
    config, result = validate_config_yaml("version: 1\nlaunch: {name: x}\n")
    assert config is None
    assert errors_at(result) == {"server"}

    config, result = validate_config_yaml(
        "version: 1\nlaunch: {name: x}\nreporter: {dry_run: true}\n"
    )
    assert result.is_valid
    assert config.server is None
    assert config.dry_run


@pytest.mark.parametrize(
    "yaml_text, path",
    [
        ("version: 2\nlaunch: {name: x}\nreporter: {dry_run: true}", "version"),
        ("version: 1\nlaunch: {name: ''}\nreporter: {dry_run: true}", "launch.name"),
        ("version: 1\nlaunch: {name: x, mode: LOUD}\nreporter: {dry_run: true}", "launch.mode"),
        ("version: 1\nlaunch: {name: x, attributes: [{key: a}]}\nreporter: {dry_run: true}",
         "launch.attributes[0].value"),
        ("version: 1\nlaunch: {name: x}\nreporter: {dry_run: yes-please}", "reporter.dry_run"),
        ("version: 1\nlaunch: {name: x}\nserver: {endpoint: rp.local, project: p}", "server.endpoint"),
        ("version: 1\nlaunch: {name: x}\nserver: {endpoint: 'http://rp', project: p, timeout_ms: 0}",
         "server.timeout_ms"),
        ("version: 1\nlaunch: {name: x}\nreporter: {dry_run: true}\nextra: 1", "extra"),
    ],
)
def test_invalid_configs(yaml_text, path):
    config, result = validate_config_yaml(yaml_text)

    assert config is None
    assert path in errors_at(result)


def test_missing_top_level_fields():
    _, result = validate_config_yaml("server: {endpoint: 'http://rp', project: p}")

    assert errors_at(result) == {"version", "launch"}
    assert "Configuration validation failed with 2 error(s)" in str(result)


def test_non_mapping_and_bad_yaml():
    _, result = validate_config_yaml("- just\n- a list\n")
    assert not result.is_valid

    _, result = validate_config_yaml("version: [1\n")
    assert "Invalid YAML syntax" in str(result)


def test_load_config_from_file(tmp_path, monkeypatch):
    monkeypatch.setenv("RP_TOKEN", "from-env")
    path = tmp_path / "rpbridge.yaml"
    path.write_text(VALID)

    config, result = load_config(path)

    assert result.is_valid
    assert config.server.token == "from-env"


def test_load_config_missing_file(tmp_path):
    config, result = load_config(tmp_path / "nope.yaml")

    assert config is None
    assert "File not found" in str(result)


def test_client_factory():
    assert isinstance(create_client(dry_run_config()), InMemoryClient)

    config, _ = validate_config_yaml(VALID, env={"RP_TOKEN": "t"})
    client = create_client(config)
    assert isinstance(client, ReportPortalClient)
    assert client.api_base == "https://rp.example.com/api/v1/shop"

    config.server = None
    with pytest.raises(ValueError):
        create_client(config)
