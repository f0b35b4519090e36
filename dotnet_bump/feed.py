"""NuGet v3 package feed client.

Lists every published version of a package (pre-release included) from a
NuGet v3 feed. The flat container API returns versions oldest-first; this
client hands them back newest-first, the order package management tooling
returns for an "all versions" query.
"""

from __future__ import annotations

import logging
import re

import requests

from .errors import ConfigurationError
from .models import RuntimeMetadata, UpdateConfig

logger = logging.getLogger(__name__)

NUGET_ORG_FEED = "https://api.nuget.org/v3/index.json"
DOTNET_PUBLIC_FEED = (
    "https://pkgs.dev.azure.com/dnceng/public/_packaging/dotnet{major}/nuget/v3/index.json"
)
PACKAGE_BASE_ADDRESS = "PackageBaseAddress/3.0.0"
REQUEST_TIMEOUT = 30


def select_feed_url(config: UpdateConfig, metadata: RuntimeMetadata) -> str:
    """Pick the feed packages are resolved against.

    nuget.org when asked for the RTM feed, the internal feed from the
    metadata manifest when asked for it, otherwise the public dotnet feed
    for the channel's major version.

    Raises:
        ConfigurationError: If the internal feed is requested but the
            manifest has no ``internalfeed.url``, or the channel has no
            major version.
    """
    if config.use_nuget_org:
        return NUGET_ORG_FEED
    if config.use_internal_feed:
        if not metadata.internalfeed.url:
            raise ConfigurationError(
                "Internal feed requested but internalfeed.url is not set"
            )
        return metadata.internalfeed.url

    match = re.match(r"(\d+)", metadata.sdk.channel)
    if not match:
        raise ConfigurationError(
            f"Cannot derive a feed from channel {metadata.sdk.channel!r}"
        )
    return DOTNET_PUBLIC_FEED.format(major=match.group(1))


class PackageFeed:
    """A NuGet v3 feed, addressed by its service index URL."""

    def __init__(
        self,
        index_url: str,
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.index_url = index_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self._base_address: str | None = None

    @property
    def base_address(self) -> str:
        """Flat container root, read once from the service index."""
        if self._base_address is None:
            response = self.session.get(self.index_url, timeout=self.timeout)
            response.raise_for_status()
            for resource in response.json().get("resources", []):
                if resource.get("@type") == PACKAGE_BASE_ADDRESS:
                    self._base_address = resource["@id"].rstrip("/") + "/"
                    break
            else:
                raise ConfigurationError(
                    f"{self.index_url} has no {PACKAGE_BASE_ADDRESS} resource"
                )
        return self._base_address

    def list_versions(self, package_name: str) -> list[str]:
        """Return all versions of a package, newest first.

        A package the feed does not know yields an empty list.

        Raises:
            requests.HTTPError: On any other unsuccessful response.
        """
        url = f"{self.base_address}{package_name.lower()}/index.json"
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:
            logger.debug("%s not found on %s", package_name, self.index_url)
            return []
        response.raise_for_status()
        versions = list(response.json().get("versions", []))
        versions.reverse()
        return versions
