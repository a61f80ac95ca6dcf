"""
Custom exceptions for avatarslots.

This module defines domain-specific exceptions so callers can tell caller
bugs, user-actionable configuration problems and environmental failures
apart without parsing messages.
"""


class AvatarSlotsError(Exception):
    """
    Base exception for all avatarslots errors.

    All custom exceptions should inherit from this class so that callers can
    catch every application-specific failure in one place.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Slot Errors
# =============================================================================


class InvalidSlotError(AvatarSlotsError):
    """
    Exception raised for an identifier outside the fixed slot enumeration.

    Attributes:
        slot_id: The rejected identifier.
    """

    def __init__(self, slot_id: str, details: str | None = None) -> None:
        super().__init__(f"Invalid slot id: {slot_id!r}", details)
        self.slot_id = slot_id


class MissingUrlError(AvatarSlotsError):
    """Exception raised when a non-primary slot has no configured bundle URL."""

    def __init__(self, slot_id: str) -> None:
        super().__init__(f"{slot_id} has no configured bundle URL")
        self.slot_id = slot_id


class NoEnabledSlotsError(AvatarSlotsError):
    """Exception raised when a cycle is requested but no slot is enabled."""

    def __init__(self) -> None:
        super().__init__("No enabled character slots configured")


class ValidationError(AvatarSlotsError):
    """
    Exception raised when user-supplied slot settings fail validation.

    Attributes:
        field: The name of the field that failed validation.
        value: The value that failed validation.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(AvatarSlotsError):
    """
    Exception raised when a bundle cannot be retrieved.

    Attributes:
        url: The URL that was being downloaded when the error occurred.
        status_code: The HTTP status code, when the server answered.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code


# =============================================================================
# Archive Errors
# =============================================================================


class ArchiveError(AvatarSlotsError):
    """
    Exception raised for archive-related errors.

    Attributes:
        archive_path: Path or URL of the problematic archive, if known.
    """

    def __init__(
        self,
        message: str,
        archive_path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.archive_path = archive_path


class ExtractionError(ArchiveError):
    """Exception raised when a bundle is malformed or cannot be written out."""

    pass


class NoModelFoundError(ArchiveError):
    """
    Exception raised when no descriptor file exists in an extracted bundle.

    Attributes:
        root: The extraction root that was examined.
    """

    def __init__(self, root: str) -> None:
        super().__init__(
            "No Live2D model found in extracted files",
            archive_path=root,
            details=f"examined {root}",
        )
        self.root = root


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(AvatarSlotsError):
    """
    Exception raised for directory creation, removal or read failures.

    Attributes:
        path: The path the failed operation was attempted on.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(AvatarSlotsError):
    """Exception raised when persisted configuration is invalid or unreadable."""

    pass


class SlotsFileError(ConfigurationError):
    """Exception raised when the slots file cannot be parsed or written."""

    def __init__(
        self, message: str, path: str | None = None, details: str | None = None
    ) -> None:
        super().__init__(message, details)
        self.path = path


class SettingsError(ConfigurationError):
    """Exception raised when the YAML settings file is malformed."""

    pass
