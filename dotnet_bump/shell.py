"""Shell, PowerShell and logging utilities.

Provides thin wrappers around subprocess calls for the external tools this
updater drives (dotnet, pwsh and the repository's build module), plus
output formatting helpers.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import Mapping
from pathlib import Path

BUILD_MODULE = "build.psm1"


def capture(
    *args: str,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> str:
    """Run a command and return its stripped stdout."""
    result = subprocess.run(
        args, capture_output=True, text=True, check=check, env=env, cwd=cwd
    )
    return result.stdout.strip()


def pwsh(
    script: str,
    *,
    repo_root: Path,
    env: Mapping[str, str] | None = None,
    modules: tuple[str, ...] = (BUILD_MODULE,),
    capture_output: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Run a PowerShell snippet after importing the repository's modules.

    Never raises on a non-zero exit; callers inspect returncode (and the
    combined output when capture_output is set) to decide what failed.
    """
    imports = "; ".join(
        f"Import-Module '{repo_root / module}' -Force" for module in modules
    )
    command = f"$ErrorActionPreference = 'Stop'; {imports}; {script}"
    return subprocess.run(
        ["pwsh", "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", command],
        capture_output=capture_output,
        text=True,
        env=env,
        cwd=repo_root,
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of the update run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger for diagnostics on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
