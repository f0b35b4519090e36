"""Exceptions raised by the SDK update pipeline."""

from __future__ import annotations

from pathlib import Path


class UpdateError(Exception):
    """Base class for all dotnet-bump errors."""


class ConfigurationError(UpdateError):
    """Raised when the run is configured inconsistently."""


class FeedUnavailable(UpdateError):
    """Raised when the SDK productVersion endpoint cannot be read.

    The version resolver catches this and reports "no update available".
    """

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        if url:
            message = f"{message} ({url})"
        super().__init__(message)


class VersionUnchanged(UpdateError):
    """Raised when global.json already pins the requested SDK version."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f".NET SDK version is not updated: already {version}")


class UnsupportedPlatform(UpdateError):
    """Raised when MSI packaging is requested on a non-Windows host."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(
            f"MSI packaging can only be updated on Windows (running on {platform})"
        )


class PackagingMismatch(UpdateError):
    """Raised when the generated files.wxs differs from the committed one.

    Recoverable: the packaging driver copies ``new_file`` over
    ``expected_file`` and carries on.
    """

    def __init__(self, new_file: Path, expected_file: Path):
        self.new_file = new_file
        self.expected_file = expected_file
        super().__init__(
            f"Generated {new_file} does not match {expected_file}"
        )


class PackagingError(UpdateError):
    """Raised when a bootstrap, build or packaging step fails."""


class SdkNotInstalled(UpdateError):
    """Raised when the dotnet CLI does not list the SDK that was installed."""

    def __init__(self, version: str, installed: list[str]):
        self.version = version
        self.installed = installed
        listed = ", ".join(installed) or "none"
        super().__init__(
            f".NET SDK {version} is not installed (dotnet lists: {listed})"
        )
