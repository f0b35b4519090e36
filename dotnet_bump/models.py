"""Data models for dotnet-bump.

These Pydantic models represent the manifests the updater reads, the
records it builds during a run, and the run configuration itself.
"""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

METADATA_FILE = "DotnetRuntimeMetadata.json"
GLOBAL_JSON_FILE = "global.json"
DOCKERFILE = ".devcontainer/Dockerfile"
FILES_WXS = "assets/wix/files.wxs"

# Vendored or separately-managed packages that must never be auto-upgraded.
DEFAULT_SKIP_PACKAGES: frozenset[str] = frozenset(
    {
        "NJsonSchema",
        "Markdig.Signed",
        "PowerShellHelpFiles",
        "Newtonsoft.Json",
        "Microsoft.ApplicationInsights",
        "Microsoft.Management.Infrastructure",
        "Microsoft.PowerShell.Native",
        "Microsoft.NETCore.Windows.ApiSets",
        "Microsoft.PowerShell.MarkdownRender",
    }
)

DEFAULT_PROJECT_PATHS: tuple[str, ...] = (
    "tools/packaging/projects/reference/Microsoft.PowerShell.Commands.Utility/Microsoft.PowerShell.Commands.Utility.csproj",
    "tools/packaging/projects/reference/System.Management.Automation/System.Management.Automation.csproj",
    "tools/packaging/projects/reference/Microsoft.PowerShell.ConsoleHost/Microsoft.PowerShell.ConsoleHost.csproj",
    "src",
    "test/tools",
)

DEFAULT_EXCLUDED_PROJECT_FILES: frozenset[str] = frozenset(
    {"PSGalleryModules.csproj", "PSGalleryTestModules.csproj"}
)


class SdkMetadata(BaseModel):
    """The ``sdk`` section of DotnetRuntimeMetadata.json."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    channel: str
    next_channel: str = Field(alias="nextChannel")
    package_version_pattern: str = Field(alias="packageVersionPattern")
    sdk_image_version: str = Field(alias="sdkImageVersion")
    quality: str | None = None
    quality_fallback: str | None = Field(default=None, alias="qualityFallback")


class InternalFeed(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str | None = None


class RuntimeMetadata(BaseModel):
    """Typed view of DotnetRuntimeMetadata.json."""

    model_config = ConfigDict(extra="allow")

    sdk: SdkMetadata
    internalfeed: InternalFeed = Field(default_factory=InternalFeed)


class GlobalSdk(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: str


class GlobalJson(BaseModel):
    """Typed view of global.json. Only ``sdk.version`` is required."""

    model_config = ConfigDict(extra="allow")

    sdk: GlobalSdk


class SdkVersionRecord(BaseModel):
    """Outcome of checking the SDK channel for a newer version.

    Attributes:
        channel: Channel that was queried (e.g. "9.0.1xx-preview4").
        current_version: Version pinned in global.json, if it was read.
        candidate_version: Latest version published on the channel, or the
            explicit override.
        should_update: True only when the candidate is worth installing.
        quality: Quality that answered the productVersion query.
        message: Failure reason when the channel could not be resolved.
    """

    channel: str
    current_version: str | None = None
    candidate_version: str | None = None
    should_update: bool = False
    quality: str | None = None
    message: str | None = None


class PackageReference(BaseModel):
    """One ``<PackageReference>`` occurrence in one project file.

    The same package referenced from two project files yields two records
    with the same name and different source paths.
    """

    name: str
    current_version: str
    source_path: Path
    resolved_new_version: str | None = None

    @property
    def declaration(self) -> str:
        """The exact declaration text expected in the project file."""
        return package_declaration(self.name, self.current_version)

    @property
    def new_declaration(self) -> str | None:
        if self.resolved_new_version is None:
            return None
        return package_declaration(self.name, self.resolved_new_version)


def package_declaration(name: str, version: str) -> str:
    return f'<PackageReference Include="{name}" Version="{version}" />'


class UpdateConfig(BaseModel):
    """Everything a run needs, passed explicitly to each pipeline step.

    Attributes:
        repo_root: Root of the repository being updated.
        sdk_version_override: Install this SDK version instead of querying
            the channel.
        use_nuget_org: Resolve packages against nuget.org (RTM feed).
        use_internal_feed: Resolve packages against the internal feed from
            the metadata manifest.
        strict_release_train: Accept only package versions exactly equal to
            the version pattern.
        interactive_auth: Let the build authenticate interactively.
        update_msi_packaging: Run the MSI packaging driver at the end.
        runtime_source_feed: Alternate feed to install the SDK from.
        runtime_source_feed_key: Credential for runtime_source_feed.
        platform: Host platform identifier, as in ``sys.platform``.
    """

    repo_root: Path = Field(default_factory=Path.cwd)
    sdk_version_override: str | None = None
    use_nuget_org: bool = False
    use_internal_feed: bool = False
    strict_release_train: bool = False
    interactive_auth: bool = False
    update_msi_packaging: bool = False
    runtime_source_feed: str | None = None
    runtime_source_feed_key: str | None = None
    platform: str = Field(default_factory=lambda: sys.platform)
    skip_packages: frozenset[str] = DEFAULT_SKIP_PACKAGES
    project_paths: tuple[str, ...] = DEFAULT_PROJECT_PATHS
    excluded_project_files: frozenset[str] = DEFAULT_EXCLUDED_PROJECT_FILES

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    @property
    def metadata_path(self) -> Path:
        return self.repo_root / METADATA_FILE

    @property
    def global_json_path(self) -> Path:
        return self.repo_root / GLOBAL_JSON_FILE

    @property
    def dockerfile_path(self) -> Path:
        return self.repo_root / DOCKERFILE

    @property
    def files_wxs_path(self) -> Path:
        return self.repo_root / FILES_WXS

    @property
    def project_roots(self) -> list[Path]:
        return [self.repo_root / p for p in self.project_paths]
