"""Reading, validating, and updating the FileDrap YAML configuration file."""

from __future__ import annotations

import difflib
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import FiledrapConfig
from .resolver import ENV_PREFIX, assign_dotted, resolve_with_precedence

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.filedrap/config.yaml")
CONFIG_PATH_ENV = "FILEDRAP_CONFIG"

_HEADER_LINES = (
    "# FileDrap configuration file",
    "# Generated automatically; manage via `filedrap config edit` or `filedrap config set`.",
)
_STAMP_PREFIX = "# Last updated:"


class ConfigManager:
    """Own the configuration file and merge it with environment and CLI overrides.

    The file location defaults to ``~/.filedrap/config.yaml`` and can be moved
    with the ``FILEDRAP_CONFIG`` environment variable.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._env = env if env is not None else os.environ
        if config_path is None:
            location = self._env.get(CONFIG_PATH_ENV)
            config_path = Path(location) if location else DEFAULT_CONFIG_PATH
        self._config_path = config_path.expanduser()

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> FiledrapConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted or nested overrides supplied on the command line.
            include_env: Whether ``FILEDRAP__SECTION__KEY`` variables apply.
            ensure_file: Write a default file first when none exists.
            env_overrides: Environment to read instead of the process environment.

        Returns:
            FiledrapConfig: Defaults overlaid with file, environment, and CLI values.

        Raises:
            ConfigError: If any source is malformed or a value fails validation.
        """
        if ensure_file:
            self.ensure_exists()

        env_values: dict[str, Any] | None = None
        if include_env:
            env_values = parse_env_overrides(
                env_overrides if env_overrides is not None else self._env
            )

        return resolve_with_precedence(
            defaults=FiledrapConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=env_values or None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored on disk, or an empty mapping without a file."""
        if not self._config_path.exists():
            return {}
        return _parse_document(self._config_path.read_text(encoding="utf-8"))

    def ensure_exists(self) -> Path:
        """Create a configuration file holding the defaults when none exists."""
        if not self._config_path.exists():
            LOGGER.debug("Writing default configuration to %s", self._config_path)
            self.save(FiledrapConfig())
        return self._config_path

    def read_text(self) -> str:
        """Return the configuration file contents, or an empty string without a file."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def save(self, config: FiledrapConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to disk below the standard header."""
        if isinstance(config, FiledrapConfig):
            data: dict[str, Any] = config.model_dump(mode="python")
        else:
            data = dict(config)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(data, sort_keys=False)
        text = "\n".join((*_HEADER_LINES, f"{_STAMP_PREFIX} {stamp}", body))
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(text, encoding="utf-8")

    def set_value(self, key: str, raw_value: str) -> list[str]:
        """Persist a single dotted ``key`` and describe the change.

        Args:
            key: Dotted path such as ``browsing.show_hidden_files``.
            raw_value: YAML scalar or collection to assign.

        Returns:
            list[str]: Unified diff of the file, ignoring the timestamp line.
            Empty when the stored value was already equal.

        Raises:
            ConfigError: If the key is empty, the value does not parse, or the
                resulting configuration is invalid.
        """
        segments = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError(
                "KEY must specify a dotted path such as 'browsing.show_hidden_files'."
            )
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Unable to parse value: {exc}") from exc

        self.ensure_exists()
        before = self.read_text()
        data = self.load_file_overrides()
        assign_dotted(data, segments, value)
        resolve_with_precedence(defaults=FiledrapConfig(), file_overrides=data)
        self.save(data)
        return _diff(before, self.read_text())

    def replace_text(self, text: str) -> bool:
        """Validate edited file contents and store them.

        Args:
            text: Complete YAML document, typically returned by an editor.

        Returns:
            bool: False when ``text`` matches the current file.

        Raises:
            ConfigError: If the document is not a valid configuration.
        """
        if text == self.read_text():
            return False
        data = _parse_document(text)
        resolve_with_precedence(defaults=FiledrapConfig(), file_overrides=data)
        self.save(data)
        return True


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``FILEDRAP__SECTION__KEY`` variables into a nested mapping.

    Values are parsed as YAML so ``true`` and ``4`` arrive as bool and int.
    """
    overrides: dict[str, Any] = {}
    for name, raw_value in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not path:
            continue
        try:
            value: Any = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        assign_dotted(overrides, path, value)
    return overrides


def _parse_document(text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse configuration file: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping at the top level.")
    return data


def _diff(before: str, after: str) -> list[str]:
    lines = [
        line
        for line in difflib.unified_diff(
            before.splitlines(),
            after.splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line[1:].startswith(_STAMP_PREFIX)
    ]
    if not any(
        line.startswith(("+", "-")) and not line.startswith(("+++", "---")) for line in lines
    ):
        return []
    return lines


__all__ = ["ConfigManager", "DEFAULT_CONFIG_PATH", "CONFIG_PATH_ENV", "parse_env_overrides"]
