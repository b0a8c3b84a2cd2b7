from pathlib import Path

import pytest

from nodebuilder.config import ConfigError, Settings, load_settings, parse_env_lines


def test_defaults(tmp_path: Path) -> None:
    assert load_settings(tmp_path, environ={}) == Settings()


def test_yaml_file(tmp_path: Path) -> None:
    (tmp_path / "nodebuilder.yml").write_text(
        "base_image: registry.example.com/node\ndefault_node_version: 16\n",
        encoding="utf-8",
    )
    s = load_settings(tmp_path, environ={})
    assert s.base_image == "registry.example.com/node"
    assert s.default_node_version == "16"
    assert s.docker_bin == "docker"


def test_environment_beats_yaml(tmp_path: Path) -> None:
    (tmp_path / "nodebuilder.yml").write_text("base_image: from-yaml\n", encoding="utf-8")
    s = load_settings(tmp_path, environ={"NODEBUILDER_BASE_IMAGE": "from-env"})
    assert s.base_image == "from-env"


def test_ci_variables(tmp_path: Path) -> None:
    env = {"GIT_LOCAL_BRANCH": "feature-x", "BUILD_NUMBER": "42", "CI": "true"}
    s = load_settings(tmp_path, environ=env)
    assert s.git_branch == "feature-x"
    assert s.build_number == "42"
    assert s.ci is True


@pytest.mark.parametrize("value", ["", "0", "false", "no"])
def test_ci_falsy(tmp_path: Path, value: str) -> None:
    assert load_settings(tmp_path, environ={"CI": value}).ci is False


def test_env_file_does_not_override(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("BUILD_NUMBER=7\nGIT_LOCAL_BRANCH=from-file\n", encoding="utf-8")
    env = {"GIT_LOCAL_BRANCH": "from-shell"}

    s = load_settings(tmp_path, environ=env)

    assert s.build_number == "7"
    assert s.git_branch == "from-shell"
    assert env["BUILD_NUMBER"] == "7"


def test_parse_env_lines() -> None:
    text = "# comment\n\nexport A=1\nB = 'two'\nC=\"three\"\nnot a pair\n=empty\n"
    assert parse_env_lines(text) == {"A": "1", "B": "two", "C": "three"}


def test_yaml_must_be_mapping(tmp_path: Path) -> None:
    (tmp_path / "nodebuilder.yml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_settings(tmp_path, environ={})


def test_yaml_unknown_keys(tmp_path: Path) -> None:
    (tmp_path / "nodebuilder.yml").write_text("base_imgae: typo\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="base_imgae"):
        load_settings(tmp_path, environ={})


def test_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / "nodebuilder.yml").write_text("base_image: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_settings(tmp_path, environ={})
