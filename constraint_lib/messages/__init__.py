"""
Message bundles and locale-aware message resolution.

A bundle is a family of YAML files sharing a base name::

    messages.yaml          default (English)
    messages.de.yaml       German
    messages.zh-TW.yaml    Traditional Chinese

Keys may be written flat (``validator.handler.max: ...``) or nested; nested
mappings are flattened with dots. A lookup for locale ``zh_TW`` tries the
``zh-TW`` file, then ``zh``, then the default file. External bundles
registered through configuration or ``add_bundle`` are searched before the
bundled one, so applications can override any built-in text.
"""

import logging
import re
import threading
from importlib.resources import files
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml

from ..exceptions import ConfigurationError
from ..resource_fetcher import ResourceFetcher

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "validator.handler"
DEFAULT_PRELOAD = ("de", "zh-TW")
INTERNAL_BASE_NAME = "messages"

MISSING_VALUE = "missing-value"
EMPTY_ELEMENTS = "empty-elements"
TEST_PASSED = "test-passed"
TEST_REJECTED = "test-rejected"


def normalize_locale(locale: Optional[str]) -> Optional[str]:
    """Normalize ``zh_tw`` / ``zh-TW`` to ``zh-TW`` and ``EN`` to ``en``."""
    if not locale:
        return None
    parts = [p for p in re.split(r"[-_]", str(locale)) if p]
    if not parts:
        return None
    language = parts[0].lower()
    rest = [p.upper() if len(p) == 2 else p for p in parts[1:]]
    return "-".join([language] + rest)


def locale_candidates(locale: Optional[str]) -> List[Optional[str]]:
    """Lookup order for a locale: full tag, language, default."""
    tag = normalize_locale(locale)
    candidates: List[Optional[str]] = []
    if tag:
        candidates.append(tag)
        language = tag.split("-")[0]
        if language != tag:
            candidates.append(language)
    candidates.append(None)
    return candidates


def flatten(data: Any, prefix: str = "") -> Dict[str, str]:
    """Flatten nested mappings into dotted keys."""
    flat: Dict[str, str] = {}
    if not isinstance(data, dict):
        return flat
    for key, value in data.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten(value, name))
        elif value is not None:
            flat[name] = str(value)
    return flat


def _read_packaged(file_name: str) -> Optional[str]:
    resource = files(__name__).joinpath(file_name)
    if not resource.is_file():
        return None
    return resource.read_text(encoding="utf-8")


class MessageBundle:
    """One family of locale files, loaded lazily and kept for the process lifetime."""

    def __init__(self, base_name: str, reader: Callable[[str], Optional[str]], preload: Iterable[str] = ()):
        """
        Initialize a bundle and load its default and preload locales.

        Args:
            base_name: Path or URI prefix, without ``.yaml``
            reader: Returns the text of a file name, or None if it does not exist
            preload: Locale tags to load eagerly

        Raises:
            ConfigurationError: If neither the default file nor any preload file exists
        """
        self.base_name = base_name
        self._reader = reader
        self._catalogs: Dict[Optional[str], Optional[Dict[str, str]]] = {}
        self._lock = threading.Lock()

        loaded = [tag for tag in [None, *preload] if self.catalog(normalize_locale(tag)) is not None]
        if not loaded:
            raise ConfigurationError(f"Message bundle '{base_name}' has no readable files")
        logger.debug(
            "Message bundle loaded",
            extra={'base_name': base_name, 'locales': [t or "default" for t in loaded]}
        )

    def file_name(self, tag: Optional[str]) -> str:
        return f"{self.base_name}.{tag}.yaml" if tag else f"{self.base_name}.yaml"

    def catalog(self, tag: Optional[str]) -> Optional[Dict[str, str]]:
        if tag in self._catalogs:
            return self._catalogs[tag]
        with self._lock:
            if tag not in self._catalogs:
                content = self._reader(self.file_name(tag))
                try:
                    self._catalogs[tag] = flatten(yaml.safe_load(content)) if content is not None else None
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid message file {self.file_name(tag)}: {e}") from e
            return self._catalogs[tag]

    def lookup(self, key: str, locale: Optional[str]) -> Optional[str]:
        for tag in locale_candidates(locale):
            catalog = self.catalog(tag)
            if catalog and key in catalog:
                return catalog[key]
        return None


class MessageResolver:
    """Resolves message keys against external bundles first, then the bundled one."""

    def __init__(
        self,
        fetcher: Optional[ResourceFetcher] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        default_locale: Optional[str] = None,
    ):
        self.fetcher = fetcher or ResourceFetcher()
        self.key_prefix = key_prefix
        self.default_locale = default_locale
        self._internal = MessageBundle(INTERNAL_BASE_NAME, _read_packaged, DEFAULT_PRELOAD)
        self._external: List[MessageBundle] = []
        self._lock = threading.Lock()

    def add_bundle(self, base_name: str, preload: Iterable[str] = ()) -> MessageBundle:
        """
        Register an external bundle, searched before previously added ones.

        Args:
            base_name: Path or URI prefix of the bundle files, e.g. ``conf/messages``
            preload: Locale tags to load eagerly
        """
        bundle = MessageBundle(base_name, self.fetcher.fetch_text, preload)
        with self._lock:
            self._external = [bundle] + self._external
        return bundle

    def message_key(self, short_key: str) -> str:
        return f"{self.key_prefix}.{short_key}"

    def resolve(self, key: str, locale: Optional[str] = None, default: Optional[str] = None) -> Optional[str]:
        """
        Look up key for locale.

        Args:
            key: Fully qualified message key
            locale: Locale tag; None means the configured default locale
            default: Returned when no bundle defines key

        Returns:
            The message text, or default
        """
        locale = locale or self.default_locale
        for bundle in self._external + [self._internal]:
            text = bundle.lookup(key, locale)
            if text is not None:
                return text
        return default
