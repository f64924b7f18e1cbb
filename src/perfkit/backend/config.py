"""
Configuration for the PerfKit backend.

Settings come from a YAML file (``.perfkit.yaml`` in the working directory
unless another path is given), then from environment variables. A missing
file is not an error; defaults are used instead.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".perfkit.yaml"
DB_FILE_NAME = "perfkit.db"


class ServerConfig(BaseModel):
    """HTTP server settings"""

    host: str = Field(default="localhost", description="Interface to bind")
    port: int = Field(default=8080, ge=1, le=65535, description="Port to bind")


class Config(BaseModel):
    """Top-level PerfKit configuration"""

    data_dir: str = Field(default=".perfkit", description="Directory for local data")
    project: str = Field(
        default_factory=lambda: Path.cwd().name,
        description="Project assigned to profiles ingested without one",
    )
    default_tags: List[str] = Field(
        default_factory=list, description="Tags added to every ingested profile"
    )
    log_level: str = Field(default="INFO", description="Root logging level")
    server: ServerConfig = Field(default_factory=ServerConfig)

    @property
    def db_path(self) -> Path:
        """SQLite database holding stored profiles"""
        return Path(self.data_dir) / DB_FILE_NAME


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration.

    Args:
        path: YAML file to read; defaults to $PERFKIT_CONFIG or .perfkit.yaml

    Returns:
        Config: Loaded configuration with environment overrides applied

    Raises:
        ValueError: The file is not valid YAML or holds invalid settings
    """
    path = path or os.getenv("PERFKIT_CONFIG") or DEFAULT_CONFIG_FILE

    data = {}
    config_file = Path(path)
    if config_file.exists():
        try:
            with config_file.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
        logger.info(f"Loaded configuration from {path}")
    else:
        logger.debug(f"No config file at {path}, using defaults")

    if not isinstance(data, dict):
        raise ValueError(f"Invalid config file {path}: expected a mapping")

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid config file {path}: {e}") from e

    host = os.getenv("PERFKIT_HOST")
    if host:
        config.server.host = host

    port = os.getenv("PERFKIT_PORT")
    if port:
        try:
            config.server.port = int(port)
        except ValueError as e:
            raise ValueError(f"Invalid PERFKIT_PORT: {port}") from e

    return config
