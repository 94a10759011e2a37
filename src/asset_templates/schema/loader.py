"""Load a template set from disk.

Expected layout (the root.json index names every schema):

    templates/
      root.json
      objects/<name>.json
      typedefs/<name>.json
      structs/<name>.json
      enums/<name>.json

Objects and typedefs listed in the index but missing on disk are skipped;
missing structs and enums are skipped with a warning, and any reference to
them then fails registry checks. A directory with no root.json is loaded by
reading every ``*.json`` file below it.
"""

from pathlib import Path

from loguru import logger

from asset_templates.schema.document import (
    SchemaDocument,
    TemplateIndex,
    parse_schema_document,
    parse_template_index,
)
from asset_templates.schema.errors import SchemaFormatError
from asset_templates.schema.registry import SchemaRegistry

ROOT_INDEX = "root.json"


def _read_document(path: Path) -> SchemaDocument:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise SchemaFormatError(f"Template is not UTF-8 text: {path}") from e
    try:
        return parse_schema_document(text)
    except SchemaFormatError as e:
        raise SchemaFormatError(f"{e.message} (file {path})", e.path, e.schema_name) from e


def load_template_index(path: Path) -> TemplateIndex:
    """Read and parse a root.json index."""
    return parse_template_index(path.read_text(encoding="utf-8"))


def _indexed_paths(template_dir: Path, index: TemplateIndex) -> list[Path]:
    paths: list[Path] = []

    for name in index.objects.values():
        path = template_dir / "objects" / f"{name}.json"
        if path.exists():
            paths.append(path)

    for name in index.typedefs.values():
        path = template_dir / "typedefs" / f"{name}.json"
        if path.exists():
            paths.append(path)

    for subdir, names in (("structs", index.structs), ("enums", index.enums)):
        for name in names:
            path = template_dir / subdir / f"{name}.json"
            if not path.exists():
                logger.warning(f"{subdir[:-1].capitalize()} template {name} not found")
                continue
            paths.append(path)

    # An object and a typedef may share a template file
    return list(dict.fromkeys(paths))


def load_template_directory(template_dir: Path) -> SchemaRegistry:
    """Build a registry from a template directory.

    Args:
        template_dir: Directory holding root.json and the template sub-directories,
            or any directory of *.json templates.

    Returns:
        The loaded, fully resolved registry.

    Raises:
        FileNotFoundError: If template_dir does not exist.
        SchemaError: Any schema loading error (see SchemaRegistry.load).
    """
    template_dir = Path(template_dir)
    if not template_dir.is_dir():
        raise FileNotFoundError(f"Template directory not found: {template_dir}")

    root_path = template_dir / ROOT_INDEX
    if root_path.exists():
        index = load_template_index(root_path)
        paths = _indexed_paths(template_dir, index)
        logger.info(f"Loading template set {index.name} from {template_dir}")
    else:
        index = None
        paths = sorted(template_dir.rglob("*.json"))
        logger.info(f"Loading {len(paths)} templates from {template_dir} (no {ROOT_INDEX})")

    documents = []
    for path in paths:
        documents.append(_read_document(path))
        logger.debug(f"Read template {path.relative_to(template_dir)}")

    return SchemaRegistry.load(documents, index=index)


__all__ = [
    "ROOT_INDEX",
    "load_template_directory",
    "load_template_index",
]
