"""Update pipeline: check → install → pin → packages → devcontainer → MSI.

This module orchestrates a .NET SDK update run:
1. Check the SDK channel for a version newer than global.json's pin
2. Install that SDK through the build module
3. Pin that version in global.json once dotnet lists it
4. Bump package references in project files to the matching release train
5. Point the dev container at the matching nightly SDK image
6. Optionally rebuild the MSI and refresh files.wxs

Steps run strictly in order. Nothing after step 1 runs unless an update is
available, and a failure part-way leaves earlier edits in place.
"""

from __future__ import annotations

from pathlib import Path

from .deps import (
    collect_package_references,
    find_project_files,
    resolve_package_versions,
    rewrite_project_files,
)
from .errors import SdkNotInstalled
from .feed import PackageFeed, select_feed_url
from .manifest import (
    get_pinned_sdk_version,
    load_metadata,
    update_devcontainer,
    update_global_json,
)
from .models import RuntimeMetadata, SdkVersionRecord, UpdateConfig
from .msi import update_msi_packaging
from .sdk import check_sdk_update, install_sdk, list_installed_sdks
from .shell import step


def check_for_update(
    config: UpdateConfig, metadata: RuntimeMetadata
) -> SdkVersionRecord:
    """Compare the next channel's latest SDK against global.json."""
    step("Checking for a newer .NET SDK")

    current = get_pinned_sdk_version(config.global_json_path)
    record = check_sdk_update(
        metadata.sdk.next_channel,
        current,
        override=config.sdk_version_override,
        quality=metadata.sdk.quality or None,
        quality_fallback=metadata.sdk.quality_fallback or None,
    )

    print(f"  channel: {record.channel}")
    print(f"  current: {record.current_version}")
    print(f"  latest:  {record.candidate_version or '<unknown>'}")
    return record


def install_new_sdk(
    config: UpdateConfig, record: SdkVersionRecord
) -> tuple[dict[str, str], str]:
    """Install the candidate SDK and confirm dotnet can see it.

    Returns:
        Tuple of (environment with dotnet on PATH, SDK version to pin).

    Raises:
        SdkNotInstalled: If ``dotnet --list-sdks`` does not list the candidate.
    """
    version = record.candidate_version
    step(f"Installing .NET SDK {version}")
    env = install_sdk(config, record)
    installed = list_installed_sdks(env)
    if version not in installed:
        raise SdkNotInstalled(version, installed)
    print(f"  dotnet lists {version}")
    return env, version


def pin_sdk_version(config: UpdateConfig, version: str) -> None:
    step("Updating global.json")
    update_global_json(config.global_json_path, version)
    print(f"  sdk.version = {version}")


def update_package_versions(
    config: UpdateConfig, metadata: RuntimeMetadata
) -> list[Path]:
    """Scan project files, resolve newer package versions, rewrite files.

    Returns:
        Project files that were written.
    """
    step("Scanning project files")
    project_files = find_project_files(
        config.project_roots, config.excluded_project_files
    )
    packages = collect_package_references(project_files, config.skip_packages)
    print(f"  {len(packages)} packages in {len(project_files)} project files")

    feed_url = select_feed_url(config, metadata)
    pattern = metadata.sdk.package_version_pattern
    step(f"Resolving package versions matching {pattern!r}")
    print(f"  feed: {feed_url}")
    resolved = resolve_package_versions(
        packages,
        PackageFeed(feed_url),
        pattern,
        strict=config.strict_release_train,
    )
    if not resolved:
        print("  All packages are current")
        return []

    step("Rewriting project files")
    written = rewrite_project_files(resolved)
    for path in written:
        print(f"  {path.relative_to(config.repo_root)}")
    return written


def update_dev_container(config: UpdateConfig, metadata: RuntimeMetadata) -> None:
    step("Updating dev container")
    update_devcontainer(config.dockerfile_path, metadata.sdk.sdk_image_version)
    print(f"  image tag: {metadata.sdk.sdk_image_version}")


def run_update(config: UpdateConfig) -> SdkVersionRecord:
    """Execute the full update pipeline.

    Returns:
        The SDK version record; ``should_update`` tells whether anything
        past the channel check ran.
    """
    metadata = load_metadata(config.metadata_path)

    # Phase 1: SDK
    record = check_for_update(config, metadata)
    if not record.should_update:
        print("\nNo .NET SDK update available.")
        return record

    env, version = install_new_sdk(config, record)
    pin_sdk_version(config, version)

    # Phase 2: dependents
    update_package_versions(config, metadata)
    update_dev_container(config, metadata)

    # Phase 3: packaging
    if config.update_msi_packaging:
        update_msi_packaging(config, env)

    print(f"\n{'=' * 60}\nDone!\n{'=' * 60}")
    return record
