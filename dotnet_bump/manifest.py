"""Manifest reading and writing utilities.

Covers the three small files the updater owns: DotnetRuntimeMetadata.json
(read-only), global.json (SDK pin) and the dev container Dockerfile.
JSON manifests are validated against their Pydantic schemas on load so a
shape mismatch fails immediately instead of surfacing as a missing field.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from pathlib import Path
from typing import Any

from .errors import VersionUnchanged
from .models import GlobalJson, RuntimeMetadata

logger = logging.getLogger(__name__)

DEVCONTAINER_FROM_RE = re.compile(r"^FROM mcr\.microsoft\.com/dotnet.*$")
DEVCONTAINER_IMAGE = "mcr.microsoft.com/dotnet/nightly/sdk"


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON document from disk."""
    return json.loads(path.read_text(encoding="utf-8-sig"))


def save_json(
    path: Path, doc: dict[str, Any], *, bom: bool = False, newline: str = "\n"
) -> None:
    """Write a JSON document with 2-space indentation.

    ``bom`` and ``newline`` let callers keep the encoding and line endings
    of the file they read, so only changed values show up in a diff.
    """
    text = json.dumps(doc, indent=2, ensure_ascii=False) + "\n"
    encoding = "utf-8-sig" if bom else "utf-8"
    path.write_bytes(text.replace("\n", newline).encode(encoding))


def load_metadata(path: Path) -> RuntimeMetadata:
    """Load and validate DotnetRuntimeMetadata.json.

    Raises:
        pydantic.ValidationError: If a required ``sdk`` field is missing.
    """
    return RuntimeMetadata.model_validate(load_json(path))


def get_pinned_sdk_version(path: Path) -> str:
    """Return ``sdk.version`` from global.json."""
    return GlobalJson.model_validate(load_json(path)).sdk.version


def update_global_json(path: Path, version: str) -> None:
    """Pin a new SDK version in global.json.

    Only ``sdk.version`` changes. Every other key, a UTF-8 BOM and CRLF line
    endings are written back as read.

    Raises:
        VersionUnchanged: If global.json already pins ``version``. Nothing
            is written in that case.
    """
    raw = path.read_bytes()
    doc = json.loads(raw.decode("utf-8-sig"))
    current = GlobalJson.model_validate(doc).sdk.version
    if current == version:
        raise VersionUnchanged(version)

    doc["sdk"]["version"] = version
    save_json(
        path,
        doc,
        bom=raw.startswith(codecs.BOM_UTF8),
        newline="\r\n" if b"\r\n" in raw else "\n",
    )
    logger.debug("global.json sdk.version %s -> %s", current, version)


def rewrite_devcontainer(text: str, image_version: str) -> str:
    """Point every dotnet base-image FROM line at the nightly SDK image.

    Each line keeps its own line ending. A missing final newline is added
    in the style of the first line.

    Example:
        "FROM mcr.microsoft.com/dotnet/sdk:7.0" with "8.0-preview"
        → "FROM mcr.microsoft.com/dotnet/nightly/sdk:8.0-preview"
    """
    replacement = f"FROM {DEVCONTAINER_IMAGE}:{image_version}"
    lines = []
    for line in text.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        if DEVCONTAINER_FROM_RE.match(body):
            line = replacement + line[len(body):]
        lines.append(line)
    if lines and not lines[-1].endswith("\n"):
        lines[-1] += "\r\n" if lines[0].endswith("\r\n") else "\n"
    return "".join(lines)


def update_devcontainer(path: Path, image_version: str) -> None:
    """Rewrite the dev container Dockerfile in place (always writes)."""
    text = path.read_bytes().decode("utf-8")
    path.write_bytes(rewrite_devcontainer(text, image_version).encode("utf-8"))
