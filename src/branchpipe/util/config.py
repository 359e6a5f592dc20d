import logging
import os
import tomllib
from logging.handlers import TimedRotatingFileHandler
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, PositiveInt, field_validator, model_validator

logger = logging.getLogger(__name__)

_config = None

ENV_PREFIX = "BRANCHPIPE_"

LOG_FORMAT = '%(asctime)s - %(levelname)s:%(name)s:%(message)s'


def parse_logger_assignments(assignments: Optional[str]) -> Dict[str, str]:
    """Parse "logger:value,logger:value" into a dictionary.

    Only the first colon of each entry separates the logger name, so values
    may be file paths that contain colons.  Blank entries are skipped.

    Raises:
        ValueError: If an entry has no value.
    """
    result = {}
    if not assignments:
        return result
    for entry in assignments.split(","):
        if not entry.strip():
            continue
        name, sep, value = entry.partition(":")
        name, value = name.strip(), value.strip()
        if not sep or not value:
            raise ValueError(f"Value required for logger '{name}'")
        result[name] = value
    return result


def reset_config():
    """Reset the configuration to None.

    The next call to get_config() reloads configuration from disk and
    environment variables.
    """
    global _config
    _config = None


def get_config(reload=False, path="~/.branchpipe.toml", ignore_env=False):
    """Get the configuration from the config file and environment variables.

    Environment variables starting with 'BRANCHPIPE_' override config file values.

    Args:
        reload (bool, optional): Force reload config from disk. Defaults to False.
        path (str, optional): Path to config file. Defaults to "~/.branchpipe.toml".
        ignore_env (bool, optional): Skip the environment variable overrides.

    Returns:
        dict: Configuration dictionary combining file and environment settings.

    Notes:
        - If config file doesn't exist, returns environment variables only
        - Configuration is cached after first load unless reload=True
    """
    global _config
    if _config is None or reload:
        logger.debug("Loading configuration")
        config_path = os.path.expanduser(path)
        if os.path.exists(config_path):
            logger.info(f"Reading config from {config_path}")
            with open(config_path, 'rb') as f:
                _config = tomllib.load(f)
                logger.debug(f"Loaded config: {_config}")
        else:
            logger.debug(f"Config file {config_path} not found, using empty config")
            _config = {}

        if not ignore_env:
            for env_var in os.environ:
                if env_var.startswith(ENV_PREFIX):
                    config_key = env_var[len(ENV_PREFIX):].lower()
                    _config[config_key] = os.environ[env_var]
                    logger.debug(f"Set {config_key} from environment variable {env_var}")

    return _config


class BufferSettings(BaseModel):
    """Which divergence buffer backs a filter-recombine pipeline.

    Attributes:
        kind: "deque" for the unbounded default, "bounded" for a fixed capacity buffer.
        capacity: Maximum number of pending divergent values.  Required for "bounded".
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["deque", "bounded"] = "deque"
    capacity: Optional[PositiveInt] = None

    @model_validator(mode="after")
    def _capacity_for_bounded(self):
        if self.kind == "bounded" and self.capacity is None:
            raise ValueError("buffer_capacity is required when buffer_kind is 'bounded'")
        return self


def get_buffer_settings(config: Optional[dict] = None) -> BufferSettings:
    """Build BufferSettings from the buffer_kind and buffer_capacity config keys.

    Raises:
        pydantic.ValidationError: If the configured values are invalid.
    """
    if config is None:
        config = get_config()
    settings = BufferSettings(
        kind=config.get("buffer_kind", "deque"),
        capacity=config.get("buffer_capacity", None),
    )
    logger.debug(f"Buffer settings: {settings}")
    return settings


class LoggerSettings(BaseModel):
    """Per-logger levels and log files.

    Logger names map to level names in ``levels`` and to file paths in
    ``files``.  The name "root" stands for the root logger.
    """

    model_config = ConfigDict(frozen=True)

    base_level: str = "WARNING"
    levels: Dict[str, str] = {}
    files: Dict[str, str] = {}

    @field_validator("base_level")
    @classmethod
    def _known_base_level(cls, level: str) -> str:
        return _check_level(level)

    @field_validator("levels")
    @classmethod
    def _known_levels(cls, levels: Dict[str, str]) -> Dict[str, str]:
        return {name: _check_level(level) for name, level in levels.items()}


def _check_level(level: str) -> str:
    level = level.upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"Unknown logging level '{level}'")
    return level


def get_logger_settings(logger_levels: Optional[str] = None,
                        base_level: str = "WARNING",
                        logger_files: Optional[str] = None) -> LoggerSettings:
    """Build LoggerSettings, falling back to the logger_levels and logger_files config keys."""
    config = get_config()
    return LoggerSettings(
        base_level=base_level,
        levels=parse_logger_assignments(logger_levels or config.get("logger_levels")),
        files=parse_logger_assignments(logger_files or config.get("logger_files")),
    )


def _named_logger(name: str) -> logging.Logger:
    return logging.getLogger(None if name == "root" else name)


def configure_logger(logger_levels: Optional[str] = None,
                     base_level: str = "WARNING",
                     logger_files: Optional[str] = None) -> LoggerSettings:
    """Configure logging levels and log files for specified loggers.

    Args:
        logger_levels: "logger:LEVEL,..." pairs.  Falls back to the logger_levels config key.
        base_level: Level for basicConfig.  Defaults to "WARNING".
        logger_files: "logger:path,..." pairs.  Falls back to the logger_files config key.

    Examples:
        >>> configure_logger("root:INFO,branchpipe.util.buffer:DEBUG")

    Returns:
        The LoggerSettings that were applied.

    Raises:
        pydantic.ValidationError: On an unknown level name.
        ValueError: On an entry without a value.
    """
    settings = get_logger_settings(logger_levels, base_level, logger_files)
    logging.basicConfig(level=settings.base_level)
    formatter = logging.Formatter(LOG_FORMAT)

    for name, level in settings.levels.items():
        target = _named_logger(name)
        target.setLevel(level)
        # replacing handlers keeps repeated configuration from duplicating records
        target.handlers.clear()
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        target.addHandler(console_handler)

    for name, file_name in settings.files.items():
        file_handler = TimedRotatingFileHandler(file_name, when='midnight', backupCount=7)
        file_handler.setLevel(settings.levels.get(name, settings.base_level))
        file_handler.setFormatter(formatter)
        _named_logger(name).addHandler(file_handler)

    logger.debug(f"Configured loggers: {settings}")
    return settings
