"""Tests for the non-regression configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from rohcverify.codec.base import CidType
from rohcverify.plugins.nonreg.config import (
    ENV_CONFIG_PATH,
    NonregConfig,
    build_runtime_config,
    load_yaml_config,
)
from rohcverify.utils.errors import ConfigurationError


class TestNonregConfig:
    """Test cases for NonregConfig."""

    def test_defaults(self) -> None:
        config = NonregConfig()

        config.validate()
        assert config.cid is CidType.SMALL
        assert config.max_contexts == 15
        assert config.reference_check is True
        assert not config.large_cid

    def test_overrides_win_over_yaml(self) -> None:
        config = NonregConfig.from_sources(
            yaml_data={"max_contexts": 4, "cid_type": "largecid", "unknown": 1},
            overrides={"max_contexts": 8, "symmetric_contexts": None},
        )

        assert config.max_contexts == 8
        assert config.cid_type == "largecid"
        assert config.large_cid
        assert config.symmetric_contexts is False

    @pytest.mark.parametrize(
        "values",
        [
            {"cid_type": "mediumcid"},
            {"max_contexts": 0},
            {"max_contexts": 16385},
            {"rtp_ports": []},
            {"rtp_ports": [70000]},
            {"ir_repetitions": 0},
        ],
    )
    def test_invalid_values(self, values: dict) -> None:
        config = NonregConfig.from_sources(overrides=values)

        with pytest.raises(ConfigurationError):
            config.validate()


class TestLoadYamlConfig:
    """Test cases for YAML lookup."""

    def test_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "conf.yaml"
        path.write_text("nonreg:\n  max_contexts: 4\n  rtp_ports: [5004]\n")

        config = build_runtime_config(config_file=path, env={}, cli_overrides={"cid_type": "largecid"})

        assert config.max_contexts == 4
        assert config.rtp_ports == [5004]
        assert config.cid_type == "largecid"

    def test_env_variable(self, tmp_path: Path) -> None:
        path = tmp_path / "env.yaml"
        path.write_text("nonreg:\n  symmetric_contexts: true\n")

        data, resolved = load_yaml_config(None, env={ENV_CONFIG_PATH: str(path)})

        assert resolved == path
        assert data == {"nonreg": {"symmetric_contexts": True}}

    def test_default_file_in_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "rohcverify_config.yaml").write_text("nonreg:\n  reference_check: false\n")
        monkeypatch.chdir(tmp_path)

        config = build_runtime_config(env={})

        assert config.reference_check is False

    def test_no_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)

        assert load_yaml_config(None, env={}) == ({}, None)

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_yaml_config(tmp_path / "missing.yaml", env={})

    @pytest.mark.parametrize("content", ["- a\n- b\n", "nonreg: [1, 2]\n", "nonreg: {bad\n"])
    def test_bad_structure(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            build_runtime_config(config_file=path, env={})
