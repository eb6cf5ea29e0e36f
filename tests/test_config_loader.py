"""
Tests for ConfigLoader and ValidatorConfig
"""
from pathlib import Path

import pytest

from constraint_lib import ConfigLoader, ConfigurationError, ValidationService, ValidatorConfig


@pytest.fixture
def write_config(tmp_path):
    """Write an override config file and return its path."""
    def factory(content, name="config.yaml"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)
    return factory


class TestDefaults:
    """Test the bundled configuration."""

    def test_bundled_defaults(self):
        """Test that the bundled file yields the default settings."""
        loader = ConfigLoader()
        config = loader.get_config()

        assert config.strict_mode is True
        assert config.single_failure_mode is False
        assert config.strict_dispatch is False
        assert config.default_locale is None
        assert config.key_prefix == "validator.handler"
        assert config.bundles == ()
        assert loader.override_config == {}

    def test_local_config_is_bundled(self):
        """Test that the bundled file is read from the package."""
        loader = ConfigLoader()
        assert loader.local_config_path.endswith("local-config.yaml")
        assert "parser" in loader.get_local_config()

    def test_dataclass_defaults_match_bundled_file(self):
        """Test that ValidatorConfig() equals the bundled configuration."""
        assert ConfigLoader().get_config() == ValidatorConfig()


class TestOverride:
    """Test override files."""

    def test_override_merges_sections(self, write_config, tmp_path):
        """Test that an override changes only the keys it names."""
        path = write_config("validation:\n  single_failure_mode: true\n")
        loader = ConfigLoader(path)
        config = loader.get_config()

        assert config.single_failure_mode is True
        assert config.strict_dispatch is False
        assert config.strict_mode is True
        assert loader.get_merged_config()["validation"]["single_failure_mode"] is True
        assert Path(config.base_dir) == tmp_path.resolve()

    def test_bundles(self, write_config):
        """Test that message bundles are read from the messages section."""
        path = write_config(
            "messages:\n"
            "  default_locale: de\n"
            "  bundles:\n"
            "    - base_name: conf/messages\n"
            "      preload: [fr]\n"
        )
        config = ConfigLoader(path).get_config()

        assert config.default_locale == "de"
        assert config.bundles[0].base_name == "conf/messages"
        assert config.bundles[0].preload == ("fr",)

    def test_file_uri(self, write_config):
        """Test that file:// URIs are accepted."""
        path = write_config("parser:\n  strict_mode: false\n")
        assert ConfigLoader(Path(path).as_uri()).get_config().strict_mode is False

    def test_missing_file(self, tmp_path):
        """Test that a missing override is a configuration error."""
        with pytest.raises(ConfigurationError, match="Config not found"):
            ConfigLoader(str(tmp_path / "absent.yaml"))

    def test_wrong_type(self, write_config):
        """Test that a value of the wrong type is rejected with its location."""
        path = write_config("parser:\n  strict_mode: \"yes\"\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration at parser/strict_mode"):
            ConfigLoader(path)

    def test_unknown_section(self, write_config):
        """Test that unknown sections are rejected."""
        path = write_config("reporting:\n  enabled: true\n")
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            ConfigLoader(path)

    def test_bad_handler_path(self, write_config):
        """Test that handler entries must be module:Class paths."""
        path = write_config("handlers:\n  - not a path\n")
        with pytest.raises(ConfigurationError, match="handlers/0"):
            ConfigLoader(path)

    def test_not_a_mapping(self, write_config):
        """Test that an override must be a mapping."""
        path = write_config("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            ConfigLoader(path)


class TestServiceConfiguration:
    """Test that the service applies the loaded configuration."""

    def test_relative_bundle_path(self, write_config, tmp_path):
        """Test that relative bundle paths resolve against the config file."""
        (tmp_path / "app.yaml").write_text(
            "validator.handler:\n  not-blank: \"{label} cannot be left empty\"\n", encoding="utf-8")
        path = write_config("messages:\n  bundles:\n    - base_name: app\n")

        service = ValidationService(path)
        result = service.validate_value("", "not-blank", label="Name")

        assert result.first_rejected.fragment_results[0].message == "Name cannot be left empty"

    def test_configured_handlers(self, write_config):
        """Test that handler classes listed in the config are registered."""
        path = write_config("handlers:\n  - sample_models:EvenHandler\n")
        service = ValidationService(path)

        assert "even" in service.registry
        assert not service.validate_value(3, "even").passed

    def test_loose_parser(self, write_config):
        """Test that strict_mode false accepts parts in any order."""
        service = ValidationService(write_config("parser:\n  strict_mode: false\n"))
        assert not service.validate_value("ab", "length<create>(3)").passed
