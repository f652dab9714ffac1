"""Filesystem helpers for reading the input assembly and writing output.

This module locates the input assembly and writes generated units and
run artifacts with proper error handling.
"""

from pathlib import Path
from typing import Iterable, List, Sequence

from .codegen.core.generator import OutputUnit
from .logging_config import get_logger

logger = get_logger(__name__)

ASSEMBLY_SUFFIXES = {".dll", ".exe"}
HEADER_SUFFIX = ".hpp"


class AssemblyNotFoundError(FileNotFoundError):
    """Raised when the input assembly does not exist."""

    pass


class OutputWriteError(Exception):
    """Custom exception for failures while writing generated files."""

    pass


def resolve_assembly_path(path: str | Path) -> Path:
    """Check that the input assembly exists.

    Args:
        path: Path to the assembly file.

    Returns:
        The path as a Path object.

    Raises:
        AssemblyNotFoundError: If the file doesn't exist.
    """
    assembly_path = Path(path)
    logger.debug(f"Looking for assembly: {assembly_path}")

    if not assembly_path.is_file():
        logger.error(f"Assembly not found: {assembly_path}")
        raise AssemblyNotFoundError(f"{assembly_path} not found.")

    if assembly_path.suffix.lower() not in ASSEMBLY_SUFFIXES:
        # Still attempt it; the metadata backends decide
        logger.warning(f"File does not look like a .NET assembly: {assembly_path}")

    return assembly_path


def is_protected_dir(path: str | Path, protected: Iterable[str | Path] = ()) -> bool:
    """Check whether a directory is the working directory, one of its parents,
    or holds one of the protected paths.

    Args:
        path: Directory that would be cleaned.
        protected: Paths that must survive, such as the input assembly.

    Returns:
        True if the directory must not be cleaned.
    """
    target = Path(path).resolve()
    cwd = Path.cwd().resolve()
    if target == cwd or target in cwd.parents:
        return True
    for item in protected:
        resolved = Path(item).resolve()
        if target == resolved or target in resolved.parents:
            return True
    return False


def remove_generated_files(output_dir: str | Path, artifact_names: Sequence[str] = ()) -> int:
    """Delete headers and run artifacts left by an earlier run, then prune empty directories.

    Args:
        output_dir: Directory that received the earlier output.
        artifact_names: File names of the run artifacts at the top of the directory.

    Returns:
        Number of files removed.
    """
    root = Path(output_dir)
    stale = [p for p in root.rglob(f"*{HEADER_SUFFIX}") if p.is_file()]
    stale.extend(root / name for name in artifact_names if (root / name).is_file())
    for path in stale:
        path.unlink()

    # Deepest first so emptied parents can go too
    directories = sorted((p for p in root.rglob("*") if p.is_dir()), key=lambda p: len(p.parts), reverse=True)
    for directory in directories:
        if not any(directory.iterdir()):
            directory.rmdir()
    return len(stale)


def prepare_output_dir(
    output_dir: str | Path,
    clean: bool = False,
    protected: Iterable[str | Path] = (),
    artifact_names: Sequence[str] = (),
) -> Path:
    """Create the output directory, optionally removing an earlier run's output first.

    Only generated headers and the named artifacts are removed, and nothing is
    removed from a directory that ``is_protected_dir`` rejects.

    Args:
        output_dir: Directory that receives generated files.
        clean: Remove previously generated files before writing.
        protected: Paths that must survive cleaning, such as the input assembly.
        artifact_names: Run artifact file names to remove along with the headers.

    Returns:
        The output directory path.

    Raises:
        OutputWriteError: If the directory cannot be prepared.
    """
    path = Path(output_dir)
    try:
        if clean and path.exists():
            if is_protected_dir(path, protected):
                logger.warning(
                    f"Not cleaning {path}: it holds the input assembly or the working directory"
                )
            else:
                removed = remove_generated_files(path, artifact_names)
                logger.info(f"Removed {removed} previously generated file(s) from {path}")
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot prepare output directory {path}: {e}", exc_info=True)
        raise OutputWriteError(f"Cannot prepare output directory {path}: {e}") from e
    return path


def write_units(output_dir: str | Path, units: Iterable[OutputUnit]) -> List[Path]:
    """Write generated units below the output directory.

    Args:
        output_dir: Root directory; unit paths are relative to it.
        units: Generated output units.

    Returns:
        Paths of the written files, in unit order.

    Raises:
        OutputWriteError: If a file cannot be written.
    """
    root = Path(output_dir)
    written = []
    for unit in units:
        target = root / unit.relative_path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(unit.content, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error writing {target}: {e}", exc_info=True)
            raise OutputWriteError(f"Error writing {target}: {e}") from e
        logger.debug(f"Wrote {target}")
        written.append(target)
    return written


def write_lines(path: str | Path, lines: Iterable[str]) -> Path:
    """Write one entry per line, creating parent directories as needed."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return target
