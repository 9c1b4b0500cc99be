"""Configuration management for AstroCam."""

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import dotenv_values
from pydantic import BaseModel, validator

logger = logging.getLogger(__name__)

# Scan interval bounds, in seconds
MIN_INTERVAL = 15
DEFAULT_INTERVAL = 15
MAX_INTERVAL = 86400

DEFAULT_COUNT = 3

ARCHIVE_MODES = ('auto', 'rar', 'zip', 'zip-uncompressed')

CONFIG_FILENAME = 'config.env'
AREAS_FILENAME = 'areas.txt'
TEMP_DIRNAME = 'temp'

# config.env key -> Config field
ENV_KEYS = {
    'SAI_SERVER': 'server',
    'SAI_USERNAME': 'username',
    'SAI_PASSWORD': 'password',
    'SAI_CAMERA_DIRECTORY': 'camera_directory',
    'SAI_PROCESSED_DIRECTORY': 'processed_directory',
    'SAI_PREFIX': 'prefix',
    'SAI_POSTFIX': 'postfix',
}


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "astrocam.log"
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    @validator('level', pre=True)
    def normalize_level(cls, v):
        level = str(v or "INFO").strip().upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"Unknown log level: {v}")
        return level


class Config(BaseModel):
    """Main configuration model."""
    server: str = ""
    username: str = ""
    password: str = ""
    camera_directory: str = ""
    processed_directory: str = ""
    interval: int = DEFAULT_INTERVAL
    requested_interval: int = DEFAULT_INTERVAL
    count: int = DEFAULT_COUNT
    prefix: str = ""
    postfix: str = ""
    archive_mode: str = "auto"
    logging: LoggingConfig = LoggingConfig()

    @validator('username', 'password', pre=True)
    def strip_credentials(cls, v):
        return (v or "").strip()

    @validator('camera_directory', 'processed_directory', pre=True)
    def expand_paths(cls, v):
        """Expand environment variables and user home directory."""
        if not v:
            return ""
        return os.path.expanduser(os.path.expandvars(v))

    @validator('count')
    def check_count(cls, v):
        if v < 1:
            raise ValueError(f"Files per archive must be at least 1, got {v}")
        return v

    @validator('archive_mode', pre=True)
    def normalize_archive_mode(cls, v):
        mode = (v or "").strip().lower()
        if not mode:
            return "auto"
        if mode not in ARCHIVE_MODES:
            logger.warning(f"Unknown archive mode '{mode}', using auto")
            return "auto"
        return mode

    @property
    def effective_interval(self) -> int:
        """Scan interval with the minimum floor applied."""
        return max(self.interval, MIN_INTERVAL)

    def has_credentials(self) -> bool:
        """Basic auth is used only when both username and password are set."""
        return bool(self.username) and bool(self.password)


def application_dir() -> Path:
    """Directory holding the running program."""
    return Path(sys.argv[0]).resolve().parent


def find_config_file(filename: str, explicit_path: Optional[str] = None) -> Path:
    """Locate a configuration file.

    An explicit path must exist. Otherwise the application directory is
    searched first, then the current working directory.

    Raises:
        FileNotFoundError: If the file cannot be found
    """
    if explicit_path:
        path = Path(explicit_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {explicit_path}")
        return path

    for directory in (application_dir(), Path.cwd()):
        candidate = directory / filename
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"{filename} not found in application directory or current directory"
    )


def _clean_value(value: Optional[str]) -> str:
    """Trim a raw config.env value and drop any inline comment."""
    if value is None:
        return ""
    if '#' in value:
        value = value[:value.index('#')]
    return value.strip()


def parse_interval(value: str) -> Tuple[int, int]:
    """Parse SAI_INTERVAL.

    Returns:
        Tuple of (requested_interval, interval)
    """
    if not value:
        return DEFAULT_INTERVAL, DEFAULT_INTERVAL

    try:
        requested = int(value)
    except ValueError:
        logger.warning(f"Invalid SAI_INTERVAL '{value}', using default {DEFAULT_INTERVAL} seconds")
        return DEFAULT_INTERVAL, DEFAULT_INTERVAL

    if requested > MAX_INTERVAL:
        logger.warning(
            f"SAI_INTERVAL {requested} exceeds maximum {MAX_INTERVAL} seconds, "
            f"using default {DEFAULT_INTERVAL} seconds"
        )
        return requested, DEFAULT_INTERVAL

    # The minimum is enforced when the loop starts, see Config.effective_interval
    return requested, requested


def parse_config_values(raw: dict) -> dict:
    """Convert raw config.env entries into Config keyword arguments."""
    values = {key: _clean_value(value) for key, value in raw.items()}
    data = {}

    for env_key, field in ENV_KEYS.items():
        if env_key in values:
            data[field] = values[env_key]

    if 'SAI_INTERVAL' in values:
        data['requested_interval'], data['interval'] = parse_interval(values['SAI_INTERVAL'])

    if 'SAI_COUNT' in values:
        try:
            data['count'] = int(values['SAI_COUNT'])
        except ValueError:
            logger.warning(f"Invalid SAI_COUNT '{values['SAI_COUNT']}', using default {DEFAULT_COUNT}")

    if values.get('SAI_ARCHIVE_MODE'):
        data['archive_mode'] = values['SAI_ARCHIVE_MODE']

    logging_data = {}
    if values.get('SAI_LOG_LEVEL'):
        logging_data['level'] = values['SAI_LOG_LEVEL']
    if values.get('SAI_LOG_FILE'):
        logging_data['file'] = values['SAI_LOG_FILE']
    if logging_data:
        data['logging'] = logging_data

    return data


def load_config(config_path: Optional[str] = None) -> Tuple[Config, Path]:
    """Load configuration from config.env.

    A missing config.env (when no explicit path was given) is not an error:
    defaults are used and the current directory becomes the base directory.

    Returns:
        Tuple of (config, base_dir)
    """
    try:
        config_file = find_config_file(CONFIG_FILENAME, config_path)
    except FileNotFoundError as e:
        if config_path:
            raise
        logger.warning(f"Could not find {CONFIG_FILENAME}: {e}")
        config_file = None

    if config_file is None:
        base_dir = Path.cwd()
        config = Config()
    else:
        logger.info(f"Using config file: {config_file}")
        base_dir = config_file.resolve().parent
        config = Config(**parse_config_values(dotenv_values(config_file)))

    # Default directories live next to the configuration
    if not config.camera_directory:
        config.camera_directory = str(base_dir / "data")
    if not config.processed_directory:
        config.processed_directory = str(base_dir / "processed")

    return config, base_dir


def load_areas(areas_path: Optional[str] = None) -> List[str]:
    """Load the ordered list of monitored areas from areas.txt.

    Raises:
        FileNotFoundError: If areas.txt cannot be found
    """
    path = find_config_file(AREAS_FILENAME, areas_path)
    logger.info(f"Using areas file: {path}")

    areas = []
    with open(path, 'r') as f:
        for line in f:
            area = line.strip()
            if area:
                areas.append(area)
    return areas


def create_directories_if_needed(config: Config, base_dir: Path) -> Path:
    """Create the processed and scratch directories.

    Returns:
        Path to the scratch (temp) directory

    Raises:
        RuntimeError: If a directory cannot be created
    """
    temp_dir = Path(base_dir) / TEMP_DIRNAME

    for path in (temp_dir, Path(config.processed_directory)):
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RuntimeError(f"Could not create directory {path}: {e}") from e

    return temp_dir


DEFAULT_CONFIG_TEMPLATE = """\
# AstroCam configuration
# Upload endpoint (multipart/form-data POST)
SAI_SERVER=http://localhost:9999/upload
# Leave both empty to upload without authentication
SAI_USERNAME=
SAI_PASSWORD=
# Defaults to ./data and ./processed next to this file
SAI_CAMERA_DIRECTORY=
SAI_PROCESSED_DIRECTORY=
# Scan interval in seconds (minimum 15)
SAI_INTERVAL=15
# Files per archive
SAI_COUNT=3
SAI_PREFIX=
SAI_POSTFIX=
# auto, rar, zip or zip-uncompressed
SAI_ARCHIVE_MODE=auto
SAI_LOG_LEVEL=INFO
SAI_LOG_FILE=astrocam.log
"""

DEFAULT_AREAS_TEMPLATE = """\
064
091
092
"""


def create_default_config(config_path: str = CONFIG_FILENAME,
                          areas_path: Optional[str] = AREAS_FILENAME) -> None:
    """Create a template config.env and, optionally, an example areas.txt."""
    with open(config_path, 'w') as f:
        f.write(DEFAULT_CONFIG_TEMPLATE)
    logger.info(f"Created default configuration file: {config_path}")

    if areas_path:
        with open(areas_path, 'w') as f:
            f.write(DEFAULT_AREAS_TEMPLATE)
        logger.info(f"Created example areas file: {areas_path}")
