"""YAML configuration for queue handles and the CLI.

Example::

    base_dir: /mnt/shared/jobs
    dir_mode: "0755"
    file_mode: "0644"
    wait:
      timeout_sec: 30
      poll_ms: 250
    sweep:
      dest_dir: orphans
      min_age_sec: 3600
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .exceptions import ConfigValidationError, ValidationError
from .queue import DEFAULT_DIR_MODE, DEFAULT_FILE_MODE, FileQueue


ENV_BASE_DIR = "FILEQUEUE_DIR"


@dataclass
class QueueConfig:
    """Settings for opening and operating on a queue."""
    base_dir: Optional[str] = None
    dir_mode: int = DEFAULT_DIR_MODE
    file_mode: int = DEFAULT_FILE_MODE
    wait_timeout_sec: float = 0
    wait_poll_ms: int = 500
    sweep_dest_dir: str = "orphans"
    sweep_min_age_sec: float = 3600

    def resolve_base_dir(self, override: Optional[str] = None) -> str:
        """Pick the base directory: explicit override, config, then environment.

        Raises:
            ConfigValidationError: If none of them provides one
        """
        base_dir = override or self.base_dir or os.environ.get(ENV_BASE_DIR)
        if not base_dir:
            raise ConfigValidationError([ValidationError(
                f"No queue directory given (pass DIR, set base_dir, or set {ENV_BASE_DIR})",
                path="base_dir"
            )])
        return base_dir

    def open_queue(self, override: Optional[str] = None) -> FileQueue:
        return FileQueue(
            self.resolve_base_dir(override),
            dir_mode=self.dir_mode,
            file_mode=self.file_mode
        )


class ConfigLoader:
    """Loads and validates queue configuration files."""

    TOP_LEVEL_KEYS = {"base_dir", "dir_mode", "file_mode", "wait", "sweep"}
    WAIT_KEYS = {"timeout_sec", "poll_ms"}
    SWEEP_KEYS = {"dest_dir", "min_age_sec"}

    def __init__(self):
        self.errors: List[ValidationError] = []

    def load(self, config_path: Union[str, Path]) -> QueueConfig:
        """Load a YAML config file.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigValidationError: If the content is invalid
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError([ValidationError(f"Failed to parse config: {e}")])

        if data is None:
            data = {}

        config = self.from_dict(data)

        # Relative base_dir is relative to the config file, not the caller's cwd
        if config.base_dir and not Path(config.base_dir).is_absolute():
            config.base_dir = str(config_path.resolve().parent / config.base_dir)

        return config

    def from_dict(self, data: Any) -> QueueConfig:
        """Validate a parsed mapping and build a QueueConfig."""
        self.errors = []

        if not isinstance(data, dict):
            self._add_error("Config must be a YAML mapping")
            self._raise_validation_errors()

        config = QueueConfig()

        self._check_keys(data, self.TOP_LEVEL_KEYS, "")

        if "base_dir" in data:
            if isinstance(data["base_dir"], str) and data["base_dir"].strip():
                config.base_dir = data["base_dir"]
            else:
                self._add_error("must be a non-empty string", "base_dir")

        for key in ("dir_mode", "file_mode"):
            if key in data:
                mode = self._parse_mode(data[key], key)
                if mode is not None:
                    setattr(config, key, mode)

        wait = self._section(data, "wait", self.WAIT_KEYS)
        if "timeout_sec" in wait:
            value = self._number(wait["timeout_sec"], "wait.timeout_sec", allow_zero=True)
            if value is not None:
                config.wait_timeout_sec = value
        if "poll_ms" in wait:
            poll_ms = wait["poll_ms"]
            if isinstance(poll_ms, float) and not poll_ms.is_integer():
                self._add_error("must be a whole number of milliseconds", "wait.poll_ms")
            else:
                value = self._number(poll_ms, "wait.poll_ms", allow_zero=False)
                if value is not None:
                    config.wait_poll_ms = int(value)

        sweep = self._section(data, "sweep", self.SWEEP_KEYS)
        if "dest_dir" in sweep:
            if isinstance(sweep["dest_dir"], str) and sweep["dest_dir"].strip():
                config.sweep_dest_dir = sweep["dest_dir"]
            else:
                self._add_error("must be a non-empty string", "sweep.dest_dir")
        if "min_age_sec" in sweep:
            value = self._number(sweep["min_age_sec"], "sweep.min_age_sec", allow_zero=True)
            if value is not None:
                config.sweep_min_age_sec = value

        if self.errors:
            self._raise_validation_errors()

        return config

    def _section(self, data: Dict[str, Any], name: str, allowed: set) -> Dict[str, Any]:
        section = data.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            self._add_error("must be a mapping", name)
            return {}
        self._check_keys(section, allowed, name)
        return section

    def _check_keys(self, data: Dict[str, Any], allowed: set, prefix: str):
        for key in data:
            if key not in allowed:
                path = f"{prefix}.{key}" if prefix else str(key)
                self._add_error(f"unknown key '{key}'", path)

    def _parse_mode(self, value: Any, path: str) -> Optional[int]:
        """Accept 0o755-style ints or octal strings such as "0755"."""
        if isinstance(value, bool):
            self._add_error("must be an octal mode", path)
            return None
        if isinstance(value, int):
            mode = value
        elif isinstance(value, str):
            try:
                mode = int(value, 8)
            except ValueError:
                self._add_error(f"invalid octal mode '{value}'", path)
                return None
        else:
            self._add_error("must be an octal mode", path)
            return None

        if not 0 <= mode <= 0o7777:
            self._add_error(f"mode out of range: {oct(mode)}", path)
            return None
        return mode

    def _number(self, value: Any, path: str, allow_zero: bool) -> Optional[float]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self._add_error("must be a number", path)
            return None
        if value < 0 or (value == 0 and not allow_zero):
            bound = ">= 0" if allow_zero else "> 0"
            self._add_error(f"must be {bound}", path)
            return None
        return value

    def _add_error(self, message: str, path: str = ""):
        self.errors.append(ValidationError(message=message, path=path))

    def _raise_validation_errors(self):
        raise ConfigValidationError(self.errors)


def load_config(config_path: Optional[Union[str, Path]] = None) -> QueueConfig:
    """Load config from a file, or return defaults when no path is given."""
    if config_path is None:
        return QueueConfig()
    return ConfigLoader().load(config_path)
