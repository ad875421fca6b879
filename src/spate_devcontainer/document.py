"""Reading and writing devcontainer documents."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from . import config
from .spec import DevcontainerDocument

logger = logging.getLogger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}


class DocumentError(RuntimeError):
    """Raised when a document cannot be read or parsed."""


def _strip_comments(text: str, source: str) -> str:
    # Comments are blanked out but newlines survive so that parser
    # error positions still match the file.
    out = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
            continue
        if text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                line = text.count("\n", 0, i) + 1
                raise DocumentError(f"{source}: unterminated comment starting on line {line}")
            out.append("\n" * text.count("\n", i, end))
            i = end + 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _drop_trailing_commas(text: str) -> str:
    out = []
    n = len(text)
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in "}]":
                out.append(" ")
                continue
        out.append(ch)
    return "".join(out)


def loads_data(text: str, fmt: str = "json", source: str = "<string>") -> Dict[str, Any]:
    """Parse document text into a plain mapping without schema checks."""
    # Editors on Windows may prefix the file with a byte order mark
    if text.startswith("\ufeff"):
        text = text[1:]
    if fmt == "json":
        cleaned = _drop_trailing_commas(_strip_comments(text, source))
        if not cleaned.strip():
            raise DocumentError(f"Document {source} is empty")
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise DocumentError(
                f"{source}: invalid JSON at line {exc.lineno}, column {exc.colno}: {exc.msg}"
            ) from exc
    elif fmt == "yaml":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DocumentError(f"Failed to parse {source}: {exc}") from exc
        if data is None:
            raise DocumentError(f"Document {source} is empty")
    else:
        raise DocumentError(f"Unsupported format: {fmt}")

    if not isinstance(data, dict):
        raise DocumentError(
            f"{source}: top level must be a mapping, got {type(data).__name__}"
        )
    return data


def loads_document(
    text: str, fmt: str = "json", source: str = "<string>"
) -> DevcontainerDocument:
    return DevcontainerDocument.model_validate(loads_data(text, fmt, source))


def format_for(path: Path) -> str:
    return "yaml" if path.suffix.lower() in YAML_SUFFIXES else "json"


def read_data(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DocumentError(f"Cannot read {path}: {exc.strerror or exc}") from exc
    except UnicodeDecodeError as exc:
        raise DocumentError(
            f"Cannot read {path}: not valid UTF-8 ({exc.reason} at byte {exc.start})"
        ) from exc
    logger.debug("Read %d bytes from %s", len(text), path)
    return loads_data(text, format_for(path), str(path))


def load_document(path: Path) -> DevcontainerDocument:
    """Load and validate the document at ``path`` (JSON, JSONC or YAML)."""
    return DevcontainerDocument.model_validate(read_data(path))


def dump_document(
    document: DevcontainerDocument, fmt: str = "json", indent: int = 2
) -> str:
    if fmt == "json":
        return document.devcontainer_json(indent=indent) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(
            document.to_devcontainer_dict(), sort_keys=False, allow_unicode=True
        )
    raise DocumentError(f"Unsupported format: {fmt}")


def save_document(path: Path, document: DevcontainerDocument) -> None:
    """Write ``document`` to ``path`` in the format its suffix implies."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_document(document, format_for(path)), encoding="utf-8")
    logger.info("Wrote %s", path)


def find_document(root: Path) -> Optional[Path]:
    """
    Locate the devcontainer document of a project.

    Looks in ``.devcontainer/devcontainer.json``, then ``.devcontainer.json``,
    then any ``.devcontainer/<name>/devcontainer.json`` (first by name).
    """
    devcontainer_dir = root / config.DEVCONTAINER_DIR
    candidates = [
        devcontainer_dir / config.DOCUMENT_NAME,
        root / f".{config.DOCUMENT_NAME}",
    ]
    if devcontainer_dir.is_dir():
        candidates.extend(sorted(devcontainer_dir.glob(f"*/{config.DOCUMENT_NAME}")))

    for candidate in candidates:
        if candidate.is_file():
            logger.debug("Found devcontainer document at %s", candidate)
            return candidate
    return None
