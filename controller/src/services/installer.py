"""
Terraform installer - downloads and caches release binaries.
"""

import hashlib
import io
import logging
import os
import platform
import stat
import tempfile
import zipfile
from typing import Optional

import httpx

from controller.src.config import get_settings
from controller.src.errors import ToolInstallFailure
from controller.src.services.pipeline_config import VERSION_PATTERN

logger = logging.getLogger(__name__)
settings = get_settings()

ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
}

def detect_platform() -> str:
    """Release platform suffix, e.g. linux_amd64."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    arch = ARCH_ALIASES.get(machine)
    if not arch:
        raise ToolInstallFailure(f"Unsupported architecture: {machine}")
    return f"{system}_{arch}"

def binary_name() -> str:
    return "terraform.exe" if platform.system() == "Windows" else "terraform"

def install_terraform(
    version: str,
    install_dir: Optional[str] = None,
    client: Optional[httpx.Client] = None,
    target_platform: Optional[str] = None,
) -> str:
    """
    Install terraform `version` and return the binary path.
    Reuses a previously installed binary for the same version.
    """
    if not VERSION_PATTERN.match(version or ""):
        raise ToolInstallFailure(f"Invalid terraform version: {version!r}")

    install_dir = install_dir or settings.terraform_install_dir
    version_dir = os.path.join(install_dir, version)
    binary_path = os.path.join(version_dir, binary_name())

    if os.path.isfile(binary_path):
        logger.info(f"Using cached terraform {version} at {binary_path}")
        return binary_path

    target_platform = target_platform or detect_platform()
    archive_name = f"terraform_{version}_{target_platform}.zip"
    base_url = f"{settings.terraform_releases_url}/{version}"

    owns_client = client is None
    client = client or httpx.Client(timeout=120, follow_redirects=True)

    try:
        logger.info(f"Downloading terraform {version} ({target_platform})")
        sums = client.get(f"{base_url}/terraform_{version}_SHA256SUMS")
        sums.raise_for_status()
        archive = client.get(f"{base_url}/{archive_name}")
        archive.raise_for_status()
    except httpx.HTTPError as e:
        raise ToolInstallFailure(f"Failed to download terraform {version}: {e}")
    finally:
        if owns_client:
            client.close()

    expected = find_checksum(sums.text, archive_name)
    actual = hashlib.sha256(archive.content).hexdigest()
    if actual != expected:
        raise ToolInstallFailure(
            f"Checksum mismatch for {archive_name}: expected {expected}, got {actual}"
        )

    try:
        with zipfile.ZipFile(io.BytesIO(archive.content)) as zf:
            binary = zf.read(binary_name())
    except (zipfile.BadZipFile, KeyError) as e:
        raise ToolInstallFailure(f"Invalid terraform archive {archive_name}: {e}")

    write_binary(binary, binary_path)

    logger.info(f"Installed terraform {version} to {binary_path}")
    return binary_path

def find_checksum(sums_text: str, archive_name: str) -> str:
    """Find the sha256 for archive_name in a SHA256SUMS file."""
    for line in sums_text.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[1] == archive_name:
            return parts[0]
    raise ToolInstallFailure(f"No checksum published for {archive_name}")

def write_binary(content: bytes, binary_path: str):
    """
    Write the binary next to its final path, then move it into place.
    The cached path only ever holds a complete, executable binary.
    """
    version_dir = os.path.dirname(binary_path)
    os.makedirs(version_dir, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=".terraform-", dir=version_dir)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        mode = os.stat(tmp_path).st_mode
        os.chmod(tmp_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(tmp_path, binary_path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise ToolInstallFailure(f"Failed to install terraform to {binary_path}: {e}")
