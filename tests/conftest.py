"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dotnet_bump.models import UpdateConfig

METADATA = {
    "sdk": {
        "channel": "8.0.1xx-preview7",
        "quality": "daily",
        "qualityFallback": "preview",
        "packageVersionPattern": "8.0.0-preview.7",
        "sdkImageVersion": "8.0.100-preview.7",
        "nextChannel": "8.0.1xx-rc1",
        "azureFeed": "",
    },
    "internalfeed": {"url": "https://internal.example/nuget/v3/index.json"},
}

UTILITY_CSPROJ = """\
<Project Sdk="Microsoft.NET.Sdk">
  <ItemGroup>
    <PackageReference Include="System.Text.Json" Version="8.0.0-preview.6.23329.7" />
    <PackageReference Include="Newtonsoft.Json" Version="13.0.1" />
  </ItemGroup>
</Project>
"""

ENGINE_CSPROJ = """\
<Project Sdk="Microsoft.NET.Sdk">
  <ItemGroup>
    <PackageReference Include="System.Text.Json" Version="8.0.0-preview.5.23280.8" />
    <PackageReference Include="Microsoft.Win32.Registry.AccessControl" Version="8.0.0-preview.6.23329.7" />
    <PackageReference Include="System.Drawing.Common">
      <Version>7.0.0</Version>
    </PackageReference>
    <PackageReference Include="Microsoft.CodeAnalysis" Version="$(RoslynVersion)" />
  </ItemGroup>
</Project>
"""

GALLERY_CSPROJ = """\
<Project Sdk="Microsoft.NET.Sdk">
  <ItemGroup>
    <PackageReference Include="PSReadLine" Version="2.2.6" />
  </ItemGroup>
</Project>
"""

DOCKERFILE = """\
# Dev container for the repository
FROM mcr.microsoft.com/dotnet/sdk:7.0

RUN apt-get update && apt-get install -y less
"""


class FakeFeed:
    """Feed stub returning canned version lists and recording queries."""

    def __init__(self, versions: dict[str, list[str]]):
        self.versions = versions
        self.queries: list[str] = []

    def list_versions(self, package_name: str) -> list[str]:
        self.queries.append(package_name)
        return list(self.versions.get(package_name, []))


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Create a minimal repository with every file the updater touches."""
    (tmp_path / "DotnetRuntimeMetadata.json").write_text(json.dumps(METADATA, indent=4))
    (tmp_path / "global.json").write_text(
        json.dumps({"sdk": {"version": "8.0.100-preview.6.23330.14"}}, indent=2)
    )

    devcontainer = tmp_path / ".devcontainer"
    devcontainer.mkdir()
    (devcontainer / "Dockerfile").write_text(DOCKERFILE)

    utility = tmp_path / "src" / "Utility"
    utility.mkdir(parents=True)
    (utility / "Utility.csproj").write_text(UTILITY_CSPROJ)

    engine = tmp_path / "src" / "Engine"
    engine.mkdir(parents=True)
    (engine / "Engine.csproj").write_text(ENGINE_CSPROJ)

    (tmp_path / "src" / "PSGalleryModules.csproj").write_text(GALLERY_CSPROJ)
    return tmp_path


@pytest.fixture
def config(repo: Path) -> UpdateConfig:
    return UpdateConfig(repo_root=repo, platform="linux", project_paths=("src",))


@pytest.fixture
def make_feed():
    """Factory for feed stubs: make_feed({"Pkg": ["2.0.0", "1.0.0"]})."""
    return FakeFeed
