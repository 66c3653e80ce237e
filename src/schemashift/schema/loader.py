"""Load DSL files from disk and compile them into a target model.

Mixin files use the ``.dmdx`` extension and model files ``.dmd``.  Every
directory is searched recursively; files are read in sorted order so a run is
deterministic, and all of them are compiled as one batch (mixins first, then
models, then extends blocks).

Usage:
    from schemashift.schema.loader import load_from_paths

    target = load_from_paths(["models/", "shared/mixins/"])
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from schemashift.schema.models import DatabaseSchema
from schemashift.schema.parser import SchemaParser

logger = logging.getLogger(__name__)

MIXIN_SUFFIX = ".dmdx"
MODEL_SUFFIX = ".dmd"


def find_model_files(paths: Iterable[str | Path]) -> tuple[list[Path], list[Path]]:
    """Collect ``(mixin_files, model_files)`` under the given paths.

    A path may be a directory (searched recursively) or a single file.

    Raises:
        FileNotFoundError: If a path does not exist.
    """
    mixin_files: list[Path] = []
    model_files: list[Path] = []

    for raw_path in paths:
        path = Path(raw_path)
        if not path.exists():
            raise FileNotFoundError(f"Model path not found: {path}")

        candidates = [path] if path.is_file() else sorted(p for p in path.rglob("*") if p.is_file())
        for candidate in candidates:
            suffix = candidate.suffix.lower()
            if suffix == MIXIN_SUFFIX:
                mixin_files.append(candidate)
            elif suffix == MODEL_SUFFIX:
                model_files.append(candidate)

    return mixin_files, model_files


def load_from_paths(
    paths: Iterable[str | Path],
    schema: DatabaseSchema | None = None,
) -> DatabaseSchema:
    """Compile every mixin and model file under *paths*.

    Args:
        paths: Directories or files to load.
        schema: Existing schema to extend (new one if omitted).

    Returns:
        The compiled target ``DatabaseSchema``.

    Raises:
        FileNotFoundError: If a path does not exist.
        SchemaParseError: If any file fails to compile.

    Example:
        target = load_from_paths(["./models"])
        print(sorted(t.name for t in target.tables.values()))
    """
    mixin_files, model_files = find_model_files(paths)
    logger.info(f"Loading {len(mixin_files)} mixin file(s) and {len(model_files)} model file(s)")

    sources = [(str(p), p.read_text(encoding="utf-8")) for p in mixin_files + model_files]
    return SchemaParser(schema).parse_sources(sources)
