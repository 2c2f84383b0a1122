"""
Configuration management for yumsolve.

This module provides Pydantic models for configuration validation and
YAML-based configuration loading.
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

BACKEND_KINDS = ["sqlite", "xml"]


class ProxyConfig(BaseModel):
    """HTTP proxy configuration."""

    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class SSLConfig(BaseModel):
    """SSL/TLS configuration for HTTPS connections."""

    # Path to CA bundle file (PEM format)
    ca_bundle: Optional[str] = None

    # Disable SSL verification (not recommended for production)
    verify: bool = True

    # Client certificate for mTLS
    client_cert: Optional[str] = None
    client_key: Optional[str] = None


class DownloadConfig(BaseModel):
    """Download configuration for metadata fetches."""

    timeout: int = 300  # Timeout in seconds

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate timeout value."""
        if v < 1:
            raise ValueError("timeout must be at least 1 second")
        return v


class RepositoryConfig(BaseModel):
    """Repository configuration."""

    id: str
    name: Optional[str] = None
    baseurl: str  # upstream URL (directory holding repodata/)
    backend: str = "sqlite"  # sqlite (primary_db), xml (primary)
    enabled: bool = True

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate backend kind."""
        if v not in BACKEND_KINDS:
            raise ValueError(f"Invalid backend: {v}. Must be one of {BACKEND_KINDS}")
        return v

    @property
    def display_name(self) -> str:
        """Get display name (use name if set, otherwise id)."""
        return self.name or self.id


class GlobalConfig(BaseModel):
    """Global yumsolve configuration."""

    cache_dir: str = "~/.cache/yumsolve"
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    proxy: Optional[ProxyConfig] = None
    ssl: Optional[SSLConfig] = None
    repositories: List[RepositoryConfig] = Field(default_factory=list)

    def get_cache_path(self, repo_id: Optional[str] = None) -> Path:
        """Get cache directory, or the cache directory of one repository."""
        path = Path(self.cache_dir).expanduser()
        if repo_id:
            return path / repo_id
        return path

    def get_repository(self, repo_id: str) -> Optional[RepositoryConfig]:
        """Get repository configuration by ID."""
        for repo in self.repositories:
            if repo.id == repo_id:
                return repo
        return None

    def get_enabled_repositories(self) -> List[RepositoryConfig]:
        """Get all enabled repositories."""
        return [repo for repo in self.repositories if repo.enabled]


class ConfigLoader:
    """Configuration file loader."""

    def __init__(self, config_path: Path):
        """Initialize config loader.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path

    def load(self) -> GlobalConfig:
        """Load configuration from YAML file.

        Returns:
            GlobalConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"YAML syntax error in {self.config_path}:\n{e}")

        try:
            return GlobalConfig(**config_data)
        except Exception as e:
            raise ValueError(f"Configuration validation error in {self.config_path}:\n{e}")


def load_config(config_path: Optional[Path] = None) -> GlobalConfig:
    """Load configuration from file.

    Priority:
    1. Explicit config_path parameter (--config CLI flag)
    2. YUMSOLVE_CONFIG environment variable
    3. Default locations (/etc/yumsolve/config.yaml, ~/.config/yumsolve/config.yaml, ./config.yaml)

    Args:
        config_path: Path to config file. If None, tries YUMSOLVE_CONFIG env or default locations.

    Returns:
        GlobalConfig instance

    Raises:
        FileNotFoundError: If an explicitly requested config file is missing
    """
    import os

    default_paths = [
        Path("/etc/yumsolve/config.yaml"),
        Path.home() / ".config" / "yumsolve" / "config.yaml",
        Path("config.yaml"),
    ]

    if config_path:
        paths_to_try = [config_path]
    elif os.environ.get("YUMSOLVE_CONFIG"):
        paths_to_try = [Path(os.environ["YUMSOLVE_CONFIG"])]
    else:
        paths_to_try = default_paths

    for path in paths_to_try:
        if path.exists():
            loader = ConfigLoader(path)
            return loader.load()

    if config_path:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    elif os.environ.get("YUMSOLVE_CONFIG"):
        raise FileNotFoundError(
            f"Configuration file not found: {os.environ['YUMSOLVE_CONFIG']} (from YUMSOLVE_CONFIG)"
        )
    else:
        # Return default config if no file found
        return GlobalConfig()
