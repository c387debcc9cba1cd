"""Tests for the common error hierarchy."""

import pytest
from cms_export.common import (
    CmsExportError, ConfigurationError, RepositoryError,
    ResourceNotFoundError, ResourceDeletedError, PrincipalNotFoundError
)


class TestCommonErrors:
    """Test common error types."""

    def test_base_error(self):
        """Test base CmsExportError functionality."""
        error = CmsExportError("Test error", path="/sites/default/")

        assert str(error) == "Test error"
        assert error.message == "Test error"
        assert error.context == {"path": "/sites/default/"}

    def test_repository_error_inheritance(self):
        """Test repository errors share one base."""
        for error_class in (ResourceNotFoundError, ResourceDeletedError, PrincipalNotFoundError):
            error = error_class("failed", path="/a")
            assert isinstance(error, RepositoryError)
            assert isinstance(error, CmsExportError)

    def test_configuration_error_is_not_repository_error(self):
        """Test configuration errors are a separate branch."""
        error = ConfigurationError("bad target")

        assert isinstance(error, CmsExportError)
        assert not isinstance(error, RepositoryError)

    def test_catch_by_base(self):
        """Test that specific errors can be caught by the base class."""
        with pytest.raises(CmsExportError) as exc_info:
            raise ResourceDeletedError("gone", path="/a/b.txt")

        assert exc_info.value.context["path"] == "/a/b.txt"

    def test_empty_context(self):
        """Test errors without context."""
        error = RepositoryError("failed")
        assert error.context == {}
