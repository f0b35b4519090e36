"""SDK channel lookup and installation.

Finds the latest SDK published on a channel, decides whether it is worth
installing, installs it through the repository's build module, and reports
the SDK version the dotnet CLI actually ended up with.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import requests

from .errors import FeedUnavailable
from .models import SdkVersionRecord, UpdateConfig
from .shell import capture, pwsh
from .versions import is_newer

logger = logging.getLogger(__name__)

PRODUCT_VERSION_URL = "https://aka.ms/dotnet/{path}/sdk-productVersion.txt"
REQUEST_TIMEOUT = 30


def product_version_url(channel: str, quality: str | None = None) -> str:
    path = f"{channel}/{quality}" if quality else channel
    return PRODUCT_VERSION_URL.format(path=path)


def fetch_sdk_product_version(
    channel: str, quality: str | None = None, timeout: float = REQUEST_TIMEOUT
) -> str:
    """Read the latest SDK productVersion published for a channel.

    Raises:
        requests.HTTPError: On a non-2xx answer (callers check for 404).
        requests.RequestException: On connection failures.
    """
    url = product_version_url(channel, quality)
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.text.strip()


def _resolve_channel_version(
    channel: str, quality: str | None, quality_fallback: str | None
) -> tuple[str, str | None]:
    """Fetch the channel version, falling back to a second quality on 404."""
    try:
        return fetch_sdk_product_version(channel, quality), quality
    except requests.HTTPError as exc:
        not_found = exc.response is not None and exc.response.status_code == 404
        if not (not_found and quality_fallback):
            url = product_version_url(channel, quality)
            raise FeedUnavailable(str(exc), url) from exc
        logger.info(
            "No %s build on %s, trying %s", quality, channel, quality_fallback
        )
    except requests.RequestException as exc:
        raise FeedUnavailable(str(exc), product_version_url(channel, quality)) from exc

    try:
        return fetch_sdk_product_version(channel, quality_fallback), quality_fallback
    except requests.RequestException as exc:
        raise FeedUnavailable(
            str(exc), product_version_url(channel, quality_fallback)
        ) from exc


def check_sdk_update(
    channel: str,
    current_version: str,
    *,
    override: str | None = None,
    quality: str | None = None,
    quality_fallback: str | None = None,
) -> SdkVersionRecord:
    """Decide whether a newer SDK should be installed.

    An explicit override always updates. Otherwise the channel's latest
    version must be strictly greater than ``current_version``. Failing to
    reach the channel is logged and reported as "no update"; it never
    raises.
    """
    if override:
        return SdkVersionRecord(
            channel=channel,
            current_version=current_version,
            candidate_version=override,
            should_update=True,
            quality=quality,
        )

    try:
        candidate, used_quality = _resolve_channel_version(
            channel, quality, quality_fallback
        )
        should_update = is_newer(candidate, current_version)
    except (FeedUnavailable, ValueError) as exc:
        logger.error("Error while checking .NET SDK update: %s", exc)
        return SdkVersionRecord(
            channel=channel,
            current_version=current_version,
            should_update=False,
            quality=quality,
            message=str(exc),
        )

    return SdkVersionRecord(
        channel=channel,
        current_version=current_version,
        candidate_version=candidate,
        should_update=should_update,
        quality=used_quality,
    )


def dotnet_install_dir(config: UpdateConfig, environ: Mapping[str, str]) -> str:
    """Per-user directory the build module installs the SDK into."""
    if config.is_windows:
        return str(Path(environ.get("LOCALAPPDATA", "")) / "Microsoft" / "dotnet")
    return str(Path(environ.get("HOME", str(Path.home()))) / ".dotnet")


def with_dotnet_on_path(
    config: UpdateConfig, environ: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Return a copy of the environment with the dotnet directory on PATH.

    The directory is prepended only if it is not already listed. The input
    mapping (os.environ by default) is left untouched.
    """
    env = dict(os.environ if environ is None else environ)
    dotnet_dir = dotnet_install_dir(config, env)
    sep = ";" if config.is_windows else ":"
    entries = env.get("PATH", "").split(sep) if env.get("PATH") else []
    if dotnet_dir not in entries:
        env["PATH"] = sep.join([dotnet_dir, *entries])
    return env


def install_sdk(
    config: UpdateConfig,
    record: SdkVersionRecord,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Install the candidate SDK with ``Install-Dotnet`` from build.psm1.

    Returns:
        The environment later steps must run under to find the new SDK.

    Raises:
        subprocess.CalledProcessError: If the installer fails.
    """
    script = f"Install-Dotnet -Version '{record.candidate_version}' -Channel $null"
    if record.quality:
        script += f" -Quality '{record.quality}'"
    if config.runtime_source_feed:
        script += (
            f" -AzureFeed '{config.runtime_source_feed}'"
            " -FeedCredential $env:DOTNET_BUMP_FEED_CREDENTIAL"
        )

    child_env = dict(os.environ if environ is None else environ)
    if config.runtime_source_feed_key:
        child_env["DOTNET_BUMP_FEED_CREDENTIAL"] = config.runtime_source_feed_key

    result = pwsh(script, repo_root=config.repo_root, env=child_env)
    result.check_returncode()
    print(f"  Installed .NET SDK {record.candidate_version}")
    return with_dotnet_on_path(config, environ)


def list_installed_sdks(env: Mapping[str, str] | None = None) -> list[str]:
    """Return the SDK versions reported by ``dotnet --list-sdks``.

    Each line reads like "8.0.100 [/home/user/.dotnet/sdk]".
    """
    output = capture("dotnet", "--list-sdks", env=env)
    return [line.split()[0] for line in output.splitlines() if line.strip()]
