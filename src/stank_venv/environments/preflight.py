"""Pre-flight checks run before creating environments or installing."""

import asyncio
import os
from pathlib import Path

import aiohttp
import psutil

from stank_venv.logging import get_logger

logger = get_logger(__name__)

GB = 1024 ** 3


async def check_network(url: str = "https://pypi.org", timeout: float = 5.0) -> bool:
    """Return True when the package index answers with a 2xx or 3xx."""
    try:
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.head(url, allow_redirects=False) as response:
                reachable = response.status < 400
    except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
        logger.warning("network_unreachable", url=url, error=str(e))
        return False

    logger.debug("network_checked", url=url, reachable=reachable)
    return reachable


def _existing_parent(path: Path) -> Path:
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


def free_disk_gb(path: Path) -> float:
    return psutil.disk_usage(str(_existing_parent(path))).free / GB


def check_disk_space(path: Path, required_gb: float) -> bool:
    free = free_disk_gb(path)
    logger.debug("disk_checked", path=str(path), free_gb=round(free, 1), required_gb=required_gb)
    return free >= required_gb


def folder_size(path: Path) -> int:
    """Total size in bytes of regular files under ``path``."""
    if not path.is_dir():
        return 0
    total = 0
    for dirpath, _, filenames in os.walk(path):
        for filename in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, filename)).st_size
            except OSError:
                continue
    return total


def human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "K", "M", "G"):
        if value < 1024:
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}T"
