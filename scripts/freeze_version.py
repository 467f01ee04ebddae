"""
Goal: Write VERSION.txt (package version + current git sha) for /api/about traceability.
"""
from __future__ import annotations

import subprocess
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path


def git_sha() -> str:
    try:
        return subprocess.check_output(["git", "rev-parse", "--short", "HEAD"], text=True).strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def write_version_file(path: Path, pkg_version: str, build: str) -> None:
    # first line version, second line build, the dashboard reads them in that order
    path.write_text(f"{pkg_version}\n{build}\n", encoding="utf-8")


if __name__ == "__main__":
    try:
        pkg_version = version("tooldeck")
    except PackageNotFoundError:
        pkg_version = "0.0.0"
    write_version_file(Path(__file__).resolve().parents[1] / "VERSION.txt", pkg_version, git_sha())
