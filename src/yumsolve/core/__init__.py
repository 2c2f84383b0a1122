"""
Core functionality for yumsolve.

This package provides configuration management, metadata transport and
console output.
"""

from yumsolve.core.config import (
    ConfigLoader,
    DownloadConfig,
    GlobalConfig,
    ProxyConfig,
    RepositoryConfig,
    SSLConfig,
    load_config,
)

__all__ = [
    "ConfigLoader",
    "DownloadConfig",
    "GlobalConfig",
    "ProxyConfig",
    "RepositoryConfig",
    "SSLConfig",
    "load_config",
]
