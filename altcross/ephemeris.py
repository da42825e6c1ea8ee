"""Locate or fetch the SPK kernel used by :class:`altcross.astro.SpiceSunOracle`."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_EPHEMERIS_URL = (
    "https://naif.jpl.nasa.gov/pub/naif/generic_kernels/spk/planets/de442.bsp"
)
DEFAULT_EPHEMERIS_FILENAME = "de442.bsp"
DEFAULT_CACHE_DIR = Path.home() / ".altcross" / "kernels"


class EphemerisAcquisitionError(RuntimeError):
    """Raised when no usable kernel can be found or downloaded."""


def download_kernel(url: str, destination: Path) -> Path:
    """Stream *url* to *destination*, removing partial files on failure."""

    destination.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.info(
        json.dumps({"event": "kernel_download_started", "url": url, "destination": str(destination)})
    )
    received = 0
    try:
        with httpx.stream("GET", url, timeout=httpx.Timeout(120.0, connect=30.0)) as response:
            response.raise_for_status()
            with destination.open("wb") as handle:
                for chunk in response.iter_bytes(chunk_size=1 << 20):
                    handle.write(chunk)
                    received += len(chunk)
    except (httpx.HTTPError, OSError) as exc:
        destination.unlink(missing_ok=True)
        raise EphemerisAcquisitionError(f"Failed to download kernel from {url}: {exc}") from exc
    LOGGER.info(
        json.dumps({"event": "kernel_download_finished", "destination": str(destination), "bytes": received})
    )
    return destination


def ensure_kernel(path: Path, url: str = DEFAULT_EPHEMERIS_URL) -> Path:
    """Return *path* once it names a ``.bsp`` file or a directory holding one.

    A missing ``.bsp`` file, or a directory without kernels, is filled by
    downloading *url*.
    """

    if path.is_file():
        if path.suffix.lower() != ".bsp":
            raise EphemerisAcquisitionError(f"Kernel file must have .bsp extension: {path}")
        return path
    if path.exists() and not path.is_dir():
        raise EphemerisAcquisitionError(f"Kernel path is not a file or directory: {path}")

    if path.suffix.lower() == ".bsp":
        return download_kernel(url, path)

    if path.is_dir() and any(path.glob("*.bsp")):
        return path
    path.mkdir(parents=True, exist_ok=True)
    download_kernel(url, path / DEFAULT_EPHEMERIS_FILENAME)
    return path


def resolve_ephemeris_source() -> Path:
    """Resolve the kernel location from ``DE_BSP`` or the ``DE_BSP_CACHE_DIR`` cache."""

    override = os.environ.get("DE_BSP")
    if override:
        return ensure_kernel(Path(override).expanduser())

    cache_root = Path(os.environ.get("DE_BSP_CACHE_DIR", str(DEFAULT_CACHE_DIR))).expanduser()
    return ensure_kernel(cache_root / DEFAULT_EPHEMERIS_FILENAME)
