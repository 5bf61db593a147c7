"""
Unit image resolver — which images does a set of Quadlet units need?

Scans ``*.container`` files (one directory level, lexicographic order)
for their ``Image=`` key and returns the references deduplicated in
first-seen order, ready for prefetching.
"""

from __future__ import annotations

import logging
from pathlib import Path

from autosetup.core.engine.ledger import ExecutionLedger
from autosetup.core.models.deployment import CONTAINER_SUFFIX

logger = logging.getLogger(__name__)

_IMAGE_SECTION = "container"


def read_unit_image(path: Path) -> str | None:
    """Value of the first ``Image=`` line of a container unit, or None.

    Keys are honored before any section header and inside
    ``[Container]``; other sections and comment lines are ignored.
    """
    section: str | None = None
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read unit %s: %s", path, e)
        return None

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#;":
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip().lower()
            continue
        if section not in (None, _IMAGE_SECTION):
            continue
        key, sep, value = line.partition("=")
        if sep and key.strip() == "Image":
            value = value.strip()
            if value:
                return value
    return None


def container_unit_files(unit_dir: Path) -> list[Path]:
    """Container unit files directly in ``unit_dir``, sorted by name."""
    return sorted(
        (p for p in Path(unit_dir).iterdir() if p.name.endswith(CONTAINER_SUFFIX) and p.is_file()),
        key=lambda p: p.name,
    )


def scan_unit_images(unit_dir: Path) -> list[str]:
    """Image references in ``unit_dir``, deduplicated in first-seen order.

    Records nothing; raises ``OSError`` when the directory cannot be listed.
    """
    images: list[str] = []
    seen: set[str] = set()
    for unit in container_unit_files(unit_dir):
        image = read_unit_image(unit)
        if image is None:
            logger.debug("No Image= in %s", unit.name)
            continue
        if image not in seen:
            seen.add(image)
            images.append(image)
    return images


def resolve_unit_images(unit_dir: Path, ledger: ExecutionLedger) -> list[str]:
    """Ordered, deduplicated image references used by the units in ``unit_dir``.

    A missing or unreadable directory yields ``[]`` and a recorded warning.
    """
    unit_dir = Path(unit_dir)
    if not unit_dir.is_dir():
        ledger.warn(f"Unit directory not found: {unit_dir} (skip image pull)")
        return []
    try:
        images = scan_unit_images(unit_dir)
    except OSError as e:
        ledger.warn(f"Cannot read unit directory {unit_dir}: {e.strerror or e} (skip image pull)")
        return []

    if images:
        logger.info("Images referenced in %s: %s", unit_dir, ", ".join(images))
    else:
        logger.info("No Image= found in %s/*%s", unit_dir, CONTAINER_SUFFIX)
    return images
