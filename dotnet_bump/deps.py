"""Package reference handling.

Scans project files for ``<PackageReference>`` declarations, resolves newer
versions for them from a package feed, and rewrites the project files by
exact text substitution so the diff stays minimal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Protocol

import defusedxml.ElementTree as ET

from .models import PackageReference
from .versions import is_newer, matches_pattern

logger = logging.getLogger(__name__)

PROJECT_GLOB = "*.csproj"


class VersionSource(Protocol):
    def list_versions(self, package_name: str) -> list[str]: ...


def _local_name(tag: str) -> str:
    # Legacy projects put everything in the msbuild XML namespace
    return tag.rsplit("}", 1)[-1]


def find_project_files(roots: Iterable[Path], excluded: Iterable[str]) -> list[Path]:
    """Expand roots into the project files to scan.

    A root may be a project file or a directory searched recursively.
    Files whose name is in ``excluded`` are dropped; roots that do not
    exist are skipped with a warning.
    """
    excluded = set(excluded)
    found: list[Path] = []
    for root in roots:
        if root.is_file():
            candidates = [root] if root.match(PROJECT_GLOB) else []
        elif root.is_dir():
            candidates = sorted(root.rglob(PROJECT_GLOB))
        else:
            logger.warning("Project path %s does not exist, skipping", root)
            continue
        for path in candidates:
            if path.name not in excluded and path not in found:
                found.append(path)
    return found


def read_package_references(path: Path) -> list[PackageReference]:
    """Parse one project file and return its versioned package references.

    The version may be an attribute or a child element. References without
    a version, or whose version is an MSBuild property, are ignored.

    Raises:
        xml.etree.ElementTree.ParseError: If the file is not well-formed.
        defusedxml.EntitiesForbidden: If the file declares DTD entities.
    """
    tree = ET.parse(path)
    refs: list[PackageReference] = []
    for element in tree.getroot().iter():
        if _local_name(element.tag) != "PackageReference":
            continue
        name = element.get("Include")
        version = element.get("Version")
        if version is None:
            for child in element:
                if _local_name(child.tag) == "Version" and child.text:
                    version = child.text.strip()
        if not name or not version:
            continue
        if "$(" in version:
            logger.debug("%s: %s uses property version %s", path, name, version)
            continue
        refs.append(
            PackageReference(name=name, current_version=version, source_path=path)
        )
    return refs


def collect_package_references(
    project_files: Iterable[Path], skip_packages: Iterable[str]
) -> dict[str, list[PackageReference]]:
    """Map each package name to its occurrences across all project files.

    Packages in ``skip_packages`` are never collected, so they can never be
    rewritten.
    """
    skip = set(skip_packages)
    packages: dict[str, list[PackageReference]] = {}
    for path in project_files:
        for ref in read_package_references(path):
            if ref.name in skip:
                continue
            packages.setdefault(ref.name, []).append(ref)
    return packages


def select_version(
    current: str, candidates: Iterable[str], pattern: str, *, strict: bool = False
) -> str | None:
    """Pick the upgrade for one occurrence.

    Walks candidates in the order given and returns the first one that
    matches the pattern and is strictly newer than ``current``. This is
    deliberately "first match in feed order", not "highest version": with
    pattern "6.0.1" and candidates ["6.0.1-preview1", "6.0.1", "6.0.2"]
    the answer for "6.0.0" is "6.0.1-preview1".
    """
    for candidate in candidates:
        if not matches_pattern(candidate, pattern, strict=strict):
            continue
        if is_newer(candidate, current):
            return candidate
    return None


def resolve_package_versions(
    packages: Mapping[str, list[PackageReference]],
    feed: VersionSource,
    pattern: str,
    *,
    strict: bool = False,
) -> list[PackageReference]:
    """Query the feed once per package and resolve every occurrence.

    Sets ``resolved_new_version`` on occurrences that get an upgrade and
    returns those occurrences.
    """
    resolved: list[PackageReference] = []
    for name, refs in packages.items():
        available = feed.list_versions(name)
        for ref in refs:
            new_version = select_version(
                ref.current_version, available, pattern, strict=strict
            )
            if new_version is None:
                continue
            ref.resolved_new_version = new_version
            resolved.append(ref)
            print(
                f"  {name}: {ref.current_version} → {new_version}"
                f" ({ref.source_path.name})"
            )
    return resolved


def rewrite_project_file(path: Path, refs: Iterable[PackageReference]) -> bool:
    """Apply resolved versions to one project file.

    Each declaration is replaced verbatim. A declaration that is not found
    exactly (different attribute order, spacing, a child Version element)
    is left alone without error. The file is written only if something
    was replaced. Line endings are kept as they are on disk.

    Returns:
        True if the file was written.
    """
    content = path.read_bytes().decode("utf-8")
    changed = False
    for ref in refs:
        if ref.new_declaration is None:
            continue
        if ref.declaration not in content:
            logger.debug("%s: %r not found verbatim", path, ref.declaration)
            continue
        content = content.replace(ref.declaration, ref.new_declaration)
        changed = True

    if changed:
        path.write_bytes(content.encode("utf-8"))
    return changed


def rewrite_project_files(refs: Iterable[PackageReference]) -> list[Path]:
    """Group resolved occurrences by file and rewrite each file once.

    Returns:
        The project files that were written.
    """
    by_path: dict[Path, list[PackageReference]] = {}
    for ref in refs:
        if ref.resolved_new_version is not None:
            by_path.setdefault(ref.source_path, []).append(ref)

    return [
        path for path, group in by_path.items() if rewrite_project_file(path, group)
    ]
