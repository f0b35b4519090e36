"""CLI entry point for dotnet-bump."""

from __future__ import annotations

from pathlib import Path

import click

from dotnet_bump.errors import UpdateError
from dotnet_bump.models import UpdateConfig
from dotnet_bump.pipeline import run_update
from dotnet_bump.shell import setup_logging


@click.group()
@click.version_option(package_name="dotnet-bump")
def cli() -> None:
    """Keep a repository's .NET SDK pin and package references current."""


@cli.command()
@click.option(
    "--repo-root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Root of the repository to update.",
)
@click.option(
    "--sdk-version-override",
    default=None,
    help="Install this SDK version instead of querying the channel.",
)
@click.option(
    "--use-nuget-org",
    is_flag=True,
    help="Resolve packages against nuget.org (RTM, exact version pattern).",
)
@click.option(
    "--use-internal-feed",
    is_flag=True,
    help="Resolve packages against the internal feed from the metadata file.",
)
@click.option(
    "--interactive-auth", is_flag=True, help="Allow interactive auth in the build."
)
@click.option(
    "--update-msi-packaging",
    is_flag=True,
    help="Rebuild the MSI and refresh files.wxs (Windows only).",
)
@click.option(
    "--runtime-source-feed",
    default=None,
    help="Alternate feed to install the SDK from.",
)
@click.option(
    "--runtime-source-feed-key",
    envvar="RUNTIME_SOURCE_FEED_KEY",
    default=None,
    help="Credential for --runtime-source-feed.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def update(
    repo_root: Path,
    sdk_version_override: str | None,
    use_nuget_org: bool,
    use_internal_feed: bool,
    interactive_auth: bool,
    update_msi_packaging: bool,
    runtime_source_feed: str | None,
    runtime_source_feed_key: str | None,
    verbose: bool,
) -> None:
    """Update the .NET SDK, package references and dev container."""
    if use_nuget_org and use_internal_feed:
        raise click.UsageError(
            "--use-nuget-org and --use-internal-feed are mutually exclusive."
        )

    setup_logging(verbose)
    config = UpdateConfig(
        repo_root=repo_root.resolve(),
        sdk_version_override=sdk_version_override,
        use_nuget_org=use_nuget_org,
        use_internal_feed=use_internal_feed,
        strict_release_train=use_nuget_org,
        interactive_auth=interactive_auth,
        update_msi_packaging=update_msi_packaging,
        runtime_source_feed=runtime_source_feed,
        runtime_source_feed_key=runtime_source_feed_key,
    )

    try:
        run_update(config)
    except UpdateError as exc:
        raise click.ClickException(str(exc)) from exc
