"""Configuration of the non-regression run.

``NonregConfig`` can be built from a YAML file (``nonreg:`` mapping) and
CLI overrides. Runner code only depends on the resulting dataclass and
never reads the environment or CLI options directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Tuple

import yaml

from rohcverify.codec.base import DEFAULT_RTP_PORTS, CidType
from rohcverify.utils.errors import ConfigurationError

# Environment variable used to locate the configuration file.
ENV_CONFIG_PATH = "ROHCVERIFY_CONFIG"

# Default YAML configuration file name (looked up in current working dir).
DEFAULT_CONFIG_FILE_NAME = "rohcverify_config.yaml"

MIN_CONTEXTS = 1
MAX_CONTEXTS = 16384


@dataclass
class NonregConfig:
    """Settings shared by both codec sessions for a whole run."""

    cid_type: str = CidType.SMALL.value
    max_contexts: int = 15

    # Give both compressors the same context budget instead of the
    # historical one-context difference between them.
    symmetric_contexts: bool = False

    # When False the ROHC packets of reference are never compared and a
    # clean run is reported as skipped.
    reference_check: bool = True

    rtp_ports: list[int] = field(default_factory=lambda: list(DEFAULT_RTP_PORTS))
    ir_repetitions: int = 3

    @classmethod
    def from_sources(
        cls,
        *,
        yaml_data: Mapping[str, Any] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> "NonregConfig":
        """Build ``NonregConfig`` from YAML and overrides.

        Precedence (low -> high): defaults < YAML < overrides.
        """

        yaml_data = yaml_data or {}
        overrides = overrides or {}

        cfg = cls()
        field_names = {f.name for f in fields(cls)}

        for key, value in yaml_data.items():
            if key in field_names and value is not None:
                setattr(cfg, key, value)

        for key, value in overrides.items():
            if key in field_names and value is not None:
                setattr(cfg, key, value)

        return cfg

    @property
    def cid(self) -> CidType:
        """Parsed CID type, raising ConfigurationError on unknown values."""
        try:
            return CidType(self.cid_type)
        except ValueError:
            raise ConfigurationError(
                None,
                f"invalid CID type '{self.cid_type}', only 'smallcid' and 'largecid' expected",
            ) from None

    @property
    def large_cid(self) -> bool:
        return self.cid is CidType.LARGE

    def validate(self) -> None:
        """Check value ranges, raising ConfigurationError on the first problem."""
        self.cid  # noqa: B018 - raises on unknown CID types

        if not isinstance(self.max_contexts, int) or not (
            MIN_CONTEXTS <= self.max_contexts <= MAX_CONTEXTS
        ):
            raise ConfigurationError(
                None,
                f"the maximum number of ROHC contexts should be between "
                f"{MIN_CONTEXTS} and {MAX_CONTEXTS}, got {self.max_contexts}",
            )
        if not self.rtp_ports:
            raise ConfigurationError(None, "rtp_ports must list at least one UDP port")
        if any(not isinstance(p, int) or not 0 < p < 65536 for p in self.rtp_ports):
            raise ConfigurationError(None, f"invalid UDP port in rtp_ports: {self.rtp_ports}")
        if not isinstance(self.ir_repetitions, int) or self.ir_repetitions < 1:
            raise ConfigurationError(None, "ir_repetitions must be a positive integer")

    def max_cids(self) -> tuple[int, int]:
        """
        Largest CID of the compressor of session 1 and session 2.

        Session 2 uses max_contexts contexts, capped by the CID type. Unless
        symmetric_contexts is set, session 1 gets one fewer, keeping at
        least one context.
        """
        nominal = min(self.max_contexts - 1, self.cid.max_cid)
        if self.symmetric_contexts:
            return nominal, nominal
        return max(nominal - 1, 0), nominal


def _load_yaml_file(config_path: Path) -> dict[str, Any]:
    """Load a YAML config file and validate its structure."""

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(config_path, f"YAML parse error: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(config_path, "Top-level YAML must be a mapping")

    return data


def load_yaml_config(
    config_file: Path | None,
    *,
    env: Mapping[str, str] | None = None,
) -> Tuple[dict[str, Any], Path | None]:
    """Load YAML configuration from explicit/ENV/default locations.

    Resolution order:
    1) Explicit ``config_file`` argument (if provided).
    2) ``ROHCVERIFY_CONFIG`` environment variable.
    3) ``./rohcverify_config.yaml`` if it exists.

    Returns a tuple of ``(config_dict, resolved_path)`` where
    ``config_dict`` is empty when no configuration file is found.
    """

    env = os.environ if env is None else env

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(config_file, "Configuration file not found")
        return _load_yaml_file(config_file), config_file

    env_path_str = env.get(ENV_CONFIG_PATH)
    if env_path_str:
        env_path = Path(env_path_str)
        if not env_path.exists():
            raise ConfigurationError(env_path, "Configuration file not found")
        return _load_yaml_file(env_path), env_path

    default_path = Path(DEFAULT_CONFIG_FILE_NAME)
    if default_path.exists():
        return _load_yaml_file(default_path), default_path

    return {}, None


def build_runtime_config(
    *,
    config_file: Path | None = None,
    env: Mapping[str, str] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> NonregConfig:
    """Construct ``NonregConfig`` from the YAML file and CLI overrides.

    Values are not validated here: validation happens during the startup
    phase of the run so that errors land in the report.
    """

    yaml_data, config_path = load_yaml_config(config_file, env=env)
    section = yaml_data.get("nonreg", {})
    if not isinstance(section, dict):
        raise ConfigurationError(config_path, "'nonreg' must be a mapping")

    return NonregConfig.from_sources(yaml_data=section, overrides=cli_overrides)
