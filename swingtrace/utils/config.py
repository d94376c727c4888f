"""YAML settings for the analysis stages.

Every tunable threshold lives in config/*.yaml. Components read their own
section once, at construction, and fall back to built-in defaults for any
key the file leaves out.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# A .env file may point SWINGTRACE_CONFIG_DIR at another settings directory
load_dotenv()

CONFIG_DIR_ENV = "SWINGTRACE_CONFIG_DIR"
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


class Config:
    """Cached reader of the YAML files in one settings directory."""

    def __init__(self, config_dir: Path | None = None):
        """
        Args:
            config_dir: Settings directory. Defaults to $SWINGTRACE_CONFIG_DIR,
                then the repository's config/ directory.
        """
        if config_dir is None:
            config_dir = os.getenv(CONFIG_DIR_ENV) or DEFAULT_CONFIG_DIR

        self.config_dir = Path(config_dir)
        self._cache: dict[str, dict[str, Any]] = {}

    def path_for(self, name: str) -> Path:
        return self.config_dir / f"{name}.yaml"

    def load(self, name: str) -> dict[str, Any]:
        """Parse <config_dir>/<name>.yaml, once.

        An empty file yields an empty dict.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        if name not in self._cache:
            path = self.path_for(name)
            if not path.is_file():
                raise FileNotFoundError(f"Config file not found: {path}")

            with open(path) as f:
                self._cache[name] = yaml.safe_load(f) or {}

        return self._cache[name]


_global_config: Config | None = None


def get_config() -> Config:
    """Process-wide Config, created on first use."""
    global _global_config
    if _global_config is None:
        _global_config = Config()
    return _global_config


def load_pose_config() -> dict[str, Any]:
    """Settings of the pose estimators (pose_config.yaml)."""
    return get_config().load("pose_config")


def load_analysis_config() -> dict[str, Any]:
    """Settings of profiling, analysis, playback and comparison (analysis_config.yaml)."""
    return get_config().load("analysis_config")
