from __future__ import annotations

"""
Metadata download helper.

One requests session per repository, configured with proxy and TLS
settings. Fetches either succeed or raise FetchError; there is no retry.
file:// URLs and plain paths are read from the local filesystem.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests

from yumsolve.core.config import DownloadConfig, ProxyConfig, SSLConfig
from yumsolve.errors import FetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


def local_path(url: str) -> Path | None:
    """Return the filesystem path a URL points to, or None for remote URLs."""
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    if parsed.scheme == "":
        return Path(url)
    return None


class Downloader:
    """Fetches repository metadata over HTTP(S) or from local mirrors."""

    def __init__(
        self,
        download_config: DownloadConfig | None = None,
        proxy_config: ProxyConfig | None = None,
        ssl_config: SSLConfig | None = None,
        session: requests.Session | None = None,
    ):
        """Initialize downloader.

        Args:
            download_config: Download configuration (timeout)
            proxy_config: Optional proxy configuration
            ssl_config: Optional SSL/TLS configuration
            session: Pre-configured session to use instead of building one
        """
        self.download_config = download_config or DownloadConfig()
        self.proxy_config = proxy_config
        self.ssl_config = ssl_config
        self.session = session or self._setup_session()

    def _setup_session(self) -> requests.Session:
        """Setup requests session with SSL and proxy configuration.

        Returns:
            Configured requests session
        """
        session = requests.Session()

        if self.proxy_config:
            proxies = {}
            if self.proxy_config.http_proxy:
                proxies["http"] = self.proxy_config.http_proxy
            if self.proxy_config.https_proxy:
                proxies["https"] = self.proxy_config.https_proxy
            session.proxies.update(proxies)

            if self.proxy_config.username and self.proxy_config.password:
                session.auth = (self.proxy_config.username, self.proxy_config.password)

        if self.ssl_config:
            if not self.ssl_config.verify:
                session.verify = False
            elif self.ssl_config.ca_bundle:
                session.verify = self.ssl_config.ca_bundle

            if self.ssl_config.client_cert:
                if self.ssl_config.client_key:
                    session.cert = (self.ssl_config.client_cert, self.ssl_config.client_key)
                else:
                    session.cert = self.ssl_config.client_cert

        return session

    def fetch_bytes(self, url: str) -> bytes:
        """Fetch a small document (e.g. repomd.xml) into memory.

        Raises:
            FetchError: On transport or filesystem errors
        """
        path = local_path(url)
        try:
            if path is not None:
                return path.read_bytes()
            response = self.session.get(url, timeout=self.download_config.timeout)
            response.raise_for_status()
            return response.content
        except (requests.RequestException, OSError) as e:
            raise FetchError(url, e) from e

    def download_file(self, url: str, dest: Path) -> Path:
        """Download ``url`` to ``dest``.

        Data is streamed into a temporary file next to ``dest`` and renamed
        into place, so an interrupted download never leaves a truncated
        ``dest`` behind.

        Raises:
            FetchError: On transport or filesystem errors
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading {url} to {dest}")

        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                delete=False, dir=dest.parent, prefix=".yumsolve-", suffix=dest.suffix
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                path = local_path(url)
                if path is not None:
                    with open(path, "rb") as src:
                        shutil.copyfileobj(src, tmp_file, CHUNK_SIZE)
                else:
                    with self.session.get(
                        url, stream=True, timeout=self.download_config.timeout
                    ) as response:
                        response.raise_for_status()
                        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                            tmp_file.write(chunk)

            tmp_path.replace(dest)
        except (requests.RequestException, OSError) as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise FetchError(url, e) from e

        return dest

    def close(self) -> None:
        self.session.close()
