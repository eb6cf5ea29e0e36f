"""
Tests for MessageResolver and locale handling
"""
from dataclasses import dataclass
from typing import Annotated, Optional

import pytest

from constraint_lib import ConfigurationError, Label, Rules, ValidatorConfig, ValidationService
from constraint_lib.config_loader import BundleConfig
from constraint_lib.messages import MessageResolver, flatten, locale_candidates, normalize_locale
from sample_models import Account


@dataclass
class Invoice:
    code: Annotated[Optional[str], Rules("required"), Label("")] = None


@pytest.fixture
def resolver():
    """Create a resolver with only the bundled messages."""
    return MessageResolver()


@pytest.fixture
def bundle_dir(tmp_path):
    """Write an external bundle with a default and a German file."""
    key = f"{Invoice.__module__}.{Invoice.__qualname__}.code"
    (tmp_path / "app.yaml").write_text(
        "validator.handler:\n"
        "  not-blank: \"{label} cannot be left empty\"\n"
        "  custom-required: \"{label} please\"\n"
        f"{key}: Invoice code\n",
        encoding="utf-8",
    )
    (tmp_path / "app.de.yaml").write_text(
        "validator:\n"
        "  handler:\n"
        "    not-blank: \"{label} bitte ausfüllen\"\n",
        encoding="utf-8",
    )
    return tmp_path


class TestLocales:
    """Test locale normalization and fallback order."""

    @pytest.mark.parametrize("locale, expected", [
        ("zh_TW", "zh-TW"),
        ("zh-tw", "zh-TW"),
        ("EN", "en"),
        ("", None),
        (None, None),
    ])
    def test_normalize(self, locale, expected):
        """Test that locale tags are normalized."""
        assert normalize_locale(locale) == expected

    def test_candidates(self):
        """Test that lookup tries the full tag, the language, then the default."""
        assert locale_candidates("de_AT") == ["de-AT", "de", None]
        assert locale_candidates(None) == [None]

    def test_flatten(self):
        """Test that nested mappings become dotted keys."""
        assert flatten({"a": {"b": "x", "c": {"d": 1}}, "e": None}) == {"a.b": "x", "a.c.d": "1"}


class TestMessageResolver:
    """Test MessageResolver.resolve()."""

    def test_default_locale(self, resolver):
        """Test that the bundled English text is the default."""
        assert resolver.resolve("validator.handler.required") == "{label} is required"

    def test_language(self, resolver):
        """Test that a locale file is used when it defines the key."""
        assert resolver.resolve("validator.handler.required", "de") == "{label} ist erforderlich"

    def test_region_falls_back_to_language(self, resolver):
        """Test that an unknown region falls back to its language."""
        assert resolver.resolve("validator.handler.required", "de-AT") == "{label} ist erforderlich"

    def test_missing_key_falls_back_to_default_file(self, resolver):
        """Test that keys missing from a locale file come from the default file."""
        assert resolver.resolve("validator.handler.colour", "zh_TW") == "{label} is not a valid hex colour"

    def test_unknown_key(self, resolver):
        """Test that an unknown key yields the default."""
        assert resolver.resolve("no.such.key") is None
        assert resolver.resolve("no.such.key", default="x") == "x"

    def test_configured_default_locale(self):
        """Test that the configured default locale applies when none is passed."""
        resolver = MessageResolver(default_locale="de")
        assert resolver.resolve("validator.handler.required") == "{label} ist erforderlich"

    def test_message_key(self, resolver):
        """Test that short keys get the configured prefix."""
        assert resolver.message_key("max") == "validator.handler.max"

    def test_external_bundle_overrides(self, resolver, bundle_dir):
        """Test that an external bundle is searched before the bundled messages."""
        resolver.add_bundle(str(bundle_dir / "app"), ["de"])

        assert resolver.resolve("validator.handler.not-blank") == "{label} cannot be left empty"
        assert resolver.resolve("validator.handler.not-blank", "de") == "{label} bitte ausfüllen"
        assert resolver.resolve("validator.handler.required") == "{label} is required"

    def test_missing_bundle(self, resolver, tmp_path):
        """Test that a bundle without readable files is a configuration error."""
        with pytest.raises(ConfigurationError, match="has no readable files"):
            resolver.add_bundle(str(tmp_path / "missing"))


class TestLocalizedValidation:
    """Test localized validation messages end to end."""

    def test_german(self, service):
        """Test that messages and the summary are rendered in German."""
        result = service.validate_value("", "not-blank", label="Name", locale="de")
        assert result.first_rejected.fragment_results[0].message == "Name darf nicht leer sein"
        assert result.message == "Prüfung fehlgeschlagen"

    def test_traditional_chinese(self, service):
        """Test that an underscore locale tag selects the zh-TW file."""
        result = service.validate(Account(username="alice", age=10), locale="zh_TW")
        assert result.first_rejected.fragment_results[0].message == "age必須大於或等於18"

    @pytest.fixture
    def bundled_service(self, bundle_dir):
        """Create a service with the external test bundle."""
        config = ValidatorConfig(bundles=(BundleConfig(str(bundle_dir / "app"), ("de",)),))
        return ValidationService(config=config)

    def test_external_bundle(self, bundled_service):
        """Test that an external bundle overrides built-in handler messages."""
        result = bundled_service.validate_value("", "not-blank", label="Name")
        assert result.first_rejected.fragment_results[0].message == "Name cannot be left empty"

    def test_message_reference(self, bundled_service):
        """Test that a fragment message naming a bundle key is resolved."""
        result = bundled_service.validate_value(None, "required<<{validator.handler.custom-required}>>", label="Name")
        assert result.first_rejected.fragment_results[0].message == "Name please"

    def test_label_resource_key(self, bundled_service):
        """Test that an empty Label is resolved through the bundles."""
        result = bundled_service.validate(Invoice())
        assert result.first_rejected.label == "Invoice code"
        assert result.first_rejected.fragment_results[0].message == "Invoice code is required"

    def test_get_resource_message(self, bundled_service):
        """Test resolving references directly."""
        assert bundled_service.get_resource_message("{validator.handler.custom-required}") == "{label} please"
        assert bundled_service.get_resource_message("plain text") == "plain text"
        assert bundled_service.get_resource_message("{unknown.key}") == "{unknown.key}"
