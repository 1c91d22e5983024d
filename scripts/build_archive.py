#!/usr/bin/env python3
"""
Package the application into a versioned release zip.

Usage:
    python scripts/build_archive.py --version 1.2.3
    python scripts/build_archive.py            # version from GITHUB_REF_NAME

Writes skinserver-<version>.zip to the repository root (or --out-dir).
"""
from __future__ import annotations

import argparse
import os
import sys
import zipfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

INCLUDE = ("app", "migrations", "scripts", "alembic.ini", "pyproject.toml")
EXCLUDED_DIRS = {"__pycache__", ".pytest_cache"}
EXCLUDED_SUFFIXES = (".pyc", ".pyo", ".db")


def iter_release_files(root: Path = ROOT):
    for entry in INCLUDE:
        path = root / entry
        if path.is_file():
            yield path
            continue
        if not path.is_dir():
            continue
        for p in sorted(path.rglob("*")):
            if not p.is_file():
                continue
            if EXCLUDED_DIRS.intersection(p.relative_to(root).parts):
                continue
            if p.name.endswith(EXCLUDED_SUFFIXES):
                continue
            yield p


def build_archive(version: str, out_dir: Path, root: Path = ROOT) -> Path:
    version = version.strip().lstrip("v")
    if not version:
        raise ValueError("version must not be empty")
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / f"skinserver-{version}.zip"
    count = 0
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for p in iter_release_files(root):
            zf.write(p, p.relative_to(root).as_posix())
            count += 1
    print(f"Wrote {target} ({count} files)", flush=True)
    return target


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the release archive")
    parser.add_argument("--version", default=os.environ.get("GITHUB_REF_NAME", ""), help="Release version (tag)")
    parser.add_argument("--out-dir", default=str(ROOT), help="Directory for the zip")
    args = parser.parse_args()

    if not args.version:
        print("ERROR: --version is required (or set GITHUB_REF_NAME)", flush=True)
        sys.exit(1)
    build_archive(args.version, Path(args.out_dir))


if __name__ == "__main__":
    main()
