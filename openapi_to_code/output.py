"""
Write generated module units to disk.

Each file is written atomically: content goes to a temporary file in the
target directory which then replaces the target, so an interrupted run never
leaves a half-written module behind.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .pipeline.assembler.units import ModuleUnit

logger = logging.getLogger(__name__)


class WriteAction(Enum):
    WRITE = "WRITE"
    SKIP = "SKIP"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of writing one module unit."""

    path: Path
    action: WriteAction

    def __str__(self) -> str:
        if self.action == WriteAction.SKIP:
            return f"[SKIP] {self.path} exists (use --force to overwrite)"
        return f"[WRITE] {self.path}"


def write_atomic(path: Path, content: str) -> None:
    """Write content to ``path`` through a temporary file in the same directory.

    Raises:
        OSError: If file operations fail
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory ensures atomic rename on the same filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        text=True,
    )
    temp_path = Path(temp_path_str)

    try:
        with open(temp_fd, "w", encoding="utf-8") as f:
            f.write(content)
        temp_path.replace(path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def write_modules(base: str | Path, units: list[ModuleUnit], force: bool = False) -> list[WriteResult]:
    """Write every unit under ``base`` at its relative path.

    Args:
        base: Output directory, created when missing
        units: Module units to write
        force: Overwrite files that already exist

    Returns:
        One result per unit, in order
    """
    base = Path(base)
    results = []
    for unit in units:
        path = base / unit.relative_path
        if path.exists() and not force:
            logger.info("Skipping existing %s", path)
            results.append(WriteResult(path, WriteAction.SKIP))
            continue
        write_atomic(path, unit.source)
        logger.debug("Wrote %s (%d bytes)", path, len(unit.source))
        results.append(WriteResult(path, WriteAction.WRITE))
    return results
