import pytest

from constraint_lib import ValidationService, ValidatorConfig


@pytest.fixture
def service():
    """Create a ValidationService with the bundled configuration."""
    return ValidationService()


@pytest.fixture
def make_service():
    """Factory for services built from explicit ValidatorConfig settings."""
    def factory(**settings):
        return ValidationService(config=ValidatorConfig(**settings))
    return factory
