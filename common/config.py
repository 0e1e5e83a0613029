"""Configuration shared by the transfer core and the command line client."""

import json
import os
from pathlib import Path
from typing import Optional

from common.constants import (
    DEFAULT_CHUNK_SIZE_MB,
    DEFAULT_INSTANCE_URL,
    DEFAULT_NTP_SERVERS,
    DEFAULT_TSD_API_VERSION,
    DEFAULT_TSD_BASE_URL,
    DEFAULT_TSD_PROJECT,
    DEFAULT_TSD_SERVICE,
)
from common.exceptions import ConfigurationError
from common.logging_config import get_logger

logger = get_logger(__name__)


ENVIRONMENT_KEYS = {
    "central_ega_username": "CENTRAL_EGA_USERNAME",
    "central_ega_password": "CENTRAL_EGA_PASSWORD",
    "elixir_aai_token": "ELIXIR_AAI_TOKEN",
    "instance_url": "LOCAL_EGA_INSTANCE_URL",
    "tsd_base_url": "TSD_BASE_URL",
    "tsd_project": "TSD_PROJ_NAME",
    "chunk_size": "LEGA_COMMANDER_CHUNK_SIZE",
}


class Config:
    """
    Settings for one client invocation.

    Values are read from the environment when the instance is built and may be
    overridden by an optional JSON file. The instance is passed explicitly to
    every component that needs it.
    """

    DEFAULT_CONFIG = {
        "instance_url": DEFAULT_INSTANCE_URL,
        "tsd_base_url": DEFAULT_TSD_BASE_URL,
        "tsd_api_version": DEFAULT_TSD_API_VERSION,
        "tsd_project": DEFAULT_TSD_PROJECT,
        "tsd_service": DEFAULT_TSD_SERVICE,
        "chunk_size": DEFAULT_CHUNK_SIZE_MB,
        "ntp_servers": list(DEFAULT_NTP_SERVERS),
        "timeout": 30,
    }

    def __init__(self, config_path: Optional[Path] = None, environ: Optional[dict] = None):
        """
        Initialize configuration.

        Args:
            config_path: Optional path to a JSON file overriding environment values
            environ: Mapping to read variables from (defaults to os.environ)
        """
        self.config_path = config_path
        self.environ = os.environ if environ is None else environ
        self.data = self._load()

    def _load(self) -> dict:
        """
        Merge defaults, environment variables and the optional JSON file.

        Returns:
            Configuration dictionary
        """
        config = self.DEFAULT_CONFIG.copy()
        for key, variable in ENVIRONMENT_KEYS.items():
            value = self.environ.get(variable)
            if value:
                config[key] = value

        if self.config_path is not None and self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, IOError) as e:
                raise ConfigurationError(f"Cannot read configuration file {self.config_path}: {e}")
        return config

    def _require(self, key: str) -> str:
        value = self.data.get(key)
        if not value:
            raise ConfigurationError(f"{ENVIRONMENT_KEYS[key]} environment variable is not set")
        return value

    def get_central_ega_username(self) -> str:
        return self._require("central_ega_username")

    def get_central_ega_password(self) -> str:
        return self._require("central_ega_password")

    def get_elixir_aai_token(self) -> str:
        return self._require("elixir_aai_token")

    def get_instance_url(self) -> str:
        """
        Get LocalEGA instance base URL.

        Returns:
            Base URL without trailing slash (e.g., "https://ega.elixir.no")
        """
        return str(self.data.get("instance_url") or DEFAULT_INSTANCE_URL).rstrip('/')

    def get_tsd_base_url(self) -> str:
        return str(self.data.get("tsd_base_url") or DEFAULT_TSD_BASE_URL).rstrip('/')

    def get_tsd_url(self) -> str:
        """
        Get the TSD file API URL used by direct transfers.

        Returns:
            "<base>/<api version>/<project>/<service>"
        """
        return '/'.join([
            self.get_tsd_base_url(),
            self.data.get("tsd_api_version", DEFAULT_TSD_API_VERSION),
            self.data.get("tsd_project") or DEFAULT_TSD_PROJECT,
            self.data.get("tsd_service", DEFAULT_TSD_SERVICE),
        ])

    def get_chunk_size(self) -> int:
        """
        Get chunk size in MiB.

        Non-numeric or non-positive values fall back to the default.
        """
        try:
            chunk_size = int(self.data.get("chunk_size", DEFAULT_CHUNK_SIZE_MB))
        except (TypeError, ValueError):
            logger.warning(f"Invalid chunk size {self.data.get('chunk_size')!r}, using {DEFAULT_CHUNK_SIZE_MB} MiB")
            return DEFAULT_CHUNK_SIZE_MB
        if chunk_size <= 0:
            return DEFAULT_CHUNK_SIZE_MB
        return chunk_size

    def get_chunk_size_bytes(self) -> int:
        return self.get_chunk_size() * 1024 * 1024

    def get_ntp_servers(self) -> list[str]:
        """
        Get the ordered list of trusted time servers.
        """
        servers = self.data.get("ntp_servers") or DEFAULT_NTP_SERVERS
        if isinstance(servers, str):
            servers = [s.strip() for s in servers.split(',') if s.strip()]
        return list(servers)

    def get_timeout(self) -> int:
        """
        Get request timeout in seconds.
        """
        return self.data.get('timeout', 30)
