"""Resource fetching and caching for configuration, rule tables and message bundles."""

import hashlib
import logging
import urllib.parse
from pathlib import Path
from typing import Any, Optional, Union

import requests
import yaml

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "constraint-lib"


class ResourceFetcher:
    """Reads text resources from paths and URIs, caching remote ones on disk."""

    def __init__(
        self,
        cache_dir: Union[str, Path, None] = None,
        base_dir: Union[str, Path, None] = None,
        timeout: float = 10,
    ):
        """
        Initialize resource fetcher.

        Args:
            cache_dir: Directory for caching remote resources
            base_dir: Directory that relative paths are resolved against
            timeout: HTTP timeout in seconds
        """
        self.cache_dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        # Directory is created lazily, only when a remote resource is fetched.
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.timeout = timeout

    def fetch_text(self, uri: str) -> Optional[str]:
        """
        Fetch a text resource (with caching for remote URIs).

        Supports:
        - Relative paths, resolved against base_dir
        - Absolute paths and file:// URIs
        - http:// and https:// URIs, cached under a sha256 of the URI

        Args:
            uri: Resource URI or path

        Returns:
            The resource text, or None if it does not exist

        Raises:
            ValueError: For unsupported URI schemes
            RuntimeError: If a remote fetch fails for a reason other than 404
        """
        parsed = urllib.parse.urlparse(uri)

        # A one-letter scheme is a Windows drive, not a URI scheme
        if not parsed.scheme or len(parsed.scheme) == 1:
            path = Path(uri)
            if not path.is_absolute():
                path = self.base_dir / path
            return self._read_file(path)

        if parsed.scheme == "file":
            return self._read_file(Path(urllib.parse.unquote(parsed.path)))

        if parsed.scheme in ("http", "https"):
            cache_key = hashlib.sha256(uri.encode()).hexdigest()
            cache_path = self.cache_dir / f"resource_{cache_key}"
            if cache_path.exists():
                return cache_path.read_text(encoding="utf-8")
            content = self._fetch_uri(uri)
            if content is not None:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                cache_path.write_text(content, encoding="utf-8")
            return content

        raise ValueError(f"Unsupported URI scheme: {parsed.scheme} in {uri}")

    def load_yaml(self, uri: str) -> Optional[Any]:
        """Fetch and parse a YAML resource; None if it does not exist."""
        content = self.fetch_text(uri)
        if content is None:
            return None
        return yaml.safe_load(content)

    @staticmethod
    def _read_file(path: Path) -> Optional[str]:
        if not path.is_file():
            logger.debug("Resource not found", extra={'path': str(path)})
            return None
        return path.read_text(encoding="utf-8")

    def _fetch_uri(self, uri: str) -> Optional[str]:
        """Fetch content from HTTP/HTTPS URI."""
        try:
            response = requests.get(uri, timeout=self.timeout)
        except requests.RequestException as e:
            raise RuntimeError(f"Failed to fetch resource from {uri}: {e}") from e
        if response.status_code == 404:
            logger.debug("Remote resource not found", extra={'uri': uri})
            return None
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise RuntimeError(f"Failed to fetch resource from {uri}: {e}") from e
        return response.text
