"""YAML configuration loading with include directive support."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from xcharvest.core.log import logger

DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"


def _cli_includes(argv: list[str]) -> list[str]:
    """Collect the values of every --include option in argv."""
    includes = []
    i = 1
    while i < len(argv):
        if argv[i] == "--include" and i + 1 < len(argv):
            includes.append(argv[i + 1])
            i += 1
        i += 1
    return includes


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """YAML settings source with include: directive and --include
    CLI support.

    Deep merges, lowest priority first:
        package defaults < user config < ./xcharvest.yaml < --include
    """

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        includes = _cli_includes(sys.argv)

        base = yaml_file or settings_cls.model_config.get("yaml_file")
        if base and includes:
            yaml_file = (
                [base] if isinstance(base, (str, os.PathLike)) else list(base)
            ) + includes
        elif includes:
            yaml_file = includes
        else:
            yaml_file = base

        super().__init__(settings_cls, yaml_file)

    def _read_files(self, files, deep_merge: bool = True):
        """Load defaults, user config, project config and includes.

        Args:
            files: Project config and --include file path(s)

        Returns:
            Deep-merged dictionary of everything that exists
        """
        files_to_load = [
            DEFAULTS_FILE,
            Path(user_config_dir("xcharvest", appauthor=False))
            / "xcharvest.yaml",
        ]
        if files:
            if isinstance(files, (str, os.PathLike)):
                files = [files]
            files_to_load.extend(Path(f).expanduser() for f in files)

        result = {}
        for file_path in files_to_load:
            if file_path.is_file():
                logger.debug("Loading configuration", file=str(file_path))
                data = self._load_file_recursive(file_path, set())
                result = self._deep_merge(result, data)
            else:
                logger.debug(
                    "Configuration file not found (skipping)",
                    file=str(file_path),
                )
        return result

    def _load_file_recursive(self, filepath: Path, visited: set[Path]) -> dict:
        """Load a YAML file, resolving include: directives.

        Raises:
            ValueError: If an include cycle is detected
        """
        if filepath in visited:
            raise ValueError(f"Circular include: {filepath}")
        visited.add(filepath)

        with open(filepath) as f:
            data = yaml.safe_load(f) or {}

        if "include" in data:
            includes = data.pop("include")
            if isinstance(includes, str):
                includes = [includes]

            for inc in includes:
                inc_path = Path(inc)
                if not inc_path.is_absolute():
                    inc_path = (filepath.parent / inc_path).resolve()
                inc_data = self._load_file_recursive(inc_path, visited.copy())
                # The including file wins over what it includes
                data = self._deep_merge(inc_data, data)

        return data

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Deep merge override into base (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = YamlWithIncludesSettingsSource._deep_merge(
                    result[key], value
                )
            else:
                result[key] = value
        return result
