"""MSI packaging driver.

After an SDK bump the list of files shipped in the MSI usually changes.
This module bootstraps, builds and packages the product on Windows, and
when packaging reports that the generated files.wxs no longer matches the
committed one, replaces the committed file with the generated one.
"""

from __future__ import annotations

import json
import logging
import shutil
from collections.abc import Mapping
from pathlib import Path

from .errors import PackagingError, PackagingMismatch, UnsupportedPlatform
from .models import UpdateConfig
from .shell import BUILD_MODULE, pwsh, step

logger = logging.getLogger(__name__)

PACKAGING_MODULE = "tools/packaging"
WXS_MISMATCH_MARKER = "Current files to not match"
WXS_INFO_PREFIX = "PackagingWxs: "

# Start-PSPackage reports the generated and expected files.wxs through an
# information record tagged PackagingWxs; surface it on stdout before
# rethrowing so the driver can recover.
PACKAGE_SCRIPT = f"""
try {{
    Start-PSPackage -Type msi -SkipReleaseChecks -InformationVariable wxsData
}} catch {{
    $wxsData | Where-Object {{ $_.Tags -contains 'PackagingWxs' }} | ForEach-Object {{
        Write-Output ('{WXS_INFO_PREFIX}' + ($_.MessageData | ConvertTo-Json -Compress))
    }}
    throw
}}
"""


def _run_build_step(
    config: UpdateConfig, script: str, env: Mapping[str, str] | None
) -> None:
    result = pwsh(script, repo_root=config.repo_root, env=env)
    if result.returncode != 0:
        raise PackagingError(f"'{script}' failed with exit code {result.returncode}")


def bootstrap(config: UpdateConfig, env: Mapping[str, str] | None = None) -> None:
    """Install the packaging prerequisites (WiX and friends)."""
    _run_build_step(config, "Start-PSBootstrap -Package", env)


def build(config: UpdateConfig, env: Mapping[str, str] | None = None) -> None:
    """Run a clean Release build."""
    script = "Start-PSBuild -Clean -Configuration Release"
    if config.interactive_auth:
        script += " -InteractiveAuth"
    _run_build_step(config, script, env)


def remove_pdb_files(
    config: UpdateConfig, env: Mapping[str, str] | None = None
) -> list[Path]:
    """Delete debug symbols from the publish directory before packaging."""
    result = pwsh(
        "Split-Path (Get-PSOutput)",
        repo_root=config.repo_root,
        env=env,
        capture_output=True,
    )
    if result.returncode != 0:
        raise PackagingError(f"Get-PSOutput failed: {result.stderr.strip()}")

    lines = result.stdout.strip().splitlines()
    if not lines:
        raise PackagingError("Get-PSOutput returned no publish path")
    publish_dir = Path(lines[-1].strip())
    removed = sorted(publish_dir.glob("*.pdb"))
    for pdb in removed:
        pdb.unlink()
    logger.debug("Removed %d pdb files from %s", len(removed), publish_dir)
    return removed


def parse_wxs_info(output: str, default_expected: Path) -> tuple[Path, Path] | None:
    """Extract (new file, expected file) from packaging output, if reported.

    The expected file falls back to ``default_expected`` when the record
    only names the generated file.
    """
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith(WXS_INFO_PREFIX):
            continue
        data = json.loads(line[len(WXS_INFO_PREFIX):])
        if not data.get("NewFile"):
            continue
        expected = data.get("FilesWxsPath") or default_expected
        return Path(data["NewFile"]), Path(expected)
    return None


def package_msi(config: UpdateConfig, env: Mapping[str, str] | None = None) -> None:
    """Build the MSI package.

    Raises:
        PackagingMismatch: If files.wxs is out of date with the build.
        PackagingError: On any other packaging failure.
    """
    result = pwsh(
        PACKAGE_SCRIPT,
        repo_root=config.repo_root,
        env=env,
        modules=(BUILD_MODULE, PACKAGING_MODULE),
        capture_output=True,
    )
    output = f"{result.stdout}\n{result.stderr}"
    print(output.strip())
    if result.returncode == 0:
        return

    if WXS_MISMATCH_MARKER in output:
        info = parse_wxs_info(output, config.files_wxs_path)
        if info is not None:
            new_file, expected_file = info
            raise PackagingMismatch(new_file, expected_file)
        logger.error("files.wxs mismatch reported without the generated file path")
    raise PackagingError(f"Start-PSPackage failed with exit code {result.returncode}")


def update_msi_packaging(
    config: UpdateConfig, env: Mapping[str, str] | None = None
) -> None:
    """Bootstrap, build and package, refreshing files.wxs if it drifted.

    Raises:
        UnsupportedPlatform: When not running on Windows. Checked before
            any build step runs.
        PackagingError: If any step fails for another reason.
    """
    if not config.is_windows:
        raise UnsupportedPlatform(config.platform)

    step("Bootstrapping packaging prerequisites")
    bootstrap(config, env)

    step("Building Release")
    build(config, env)
    remove_pdb_files(config, env)

    step("Packaging MSI")
    try:
        package_msi(config, env)
    except PackagingMismatch as exc:
        logger.warning("%s; updating the committed file", exc)
        shutil.copyfile(exc.new_file, exc.expected_file)
        print(f"  Updated {exc.expected_file}")
