"""Validation logic for devcontainer documents and project layouts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

from pydantic import ValidationError

from .document import DocumentError, find_document, read_data
from .spec import DevcontainerDocument

logger = logging.getLogger(__name__)


def _record(results: List[bool], condition: bool, success: str, failure: str) -> None:
    symbol = "✓" if condition else "✗"
    message = success if condition else failure
    print(f"{symbol} {message}")
    results.append(condition)


def _location(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) or "<document>"


def format_validation_error(exc: ValidationError) -> List[str]:
    return [f"{_location(err['loc'])}: {err['msg']}" for err in exc.errors()]


def check_document(data: Any) -> List[str]:
    """Return the schema problems of a parsed document; empty when valid."""
    if not isinstance(data, dict):
        return ["<document>: top level must be a mapping"]
    try:
        DevcontainerDocument.model_validate(data)
    except ValidationError as exc:
        return format_validation_error(exc)
    return []


def validate_document_file(path: Path, require_pins: bool = False) -> bool:
    """
    Check a single devcontainer document and print a check list.

    Checks:
    - File exists and parses
    - Every typed field has the expected shape
    - Base image and features carry version pins (only with ``require_pins``)
    """
    results: List[bool] = []

    _record(results, path.is_file(), f"Document found at {path}", f"Document missing at {path}")
    if not path.is_file():
        print("\nDocument validation failed.")
        return False

    data = None
    error = ""
    try:
        data = read_data(path)
    except DocumentError as exc:
        error = str(exc)
    _record(results, data is not None, "Document parsed", f"Document invalid: {error}")

    document: Optional[DevcontainerDocument] = None
    if data is not None:
        problems = check_document(data)
        _record(
            results,
            not problems,
            "Document matches the devcontainer schema",
            f"Document has {len(problems)} schema problem(s)",
        )
        for problem in problems:
            print(f"    {problem}")
        if not problems:
            document = DevcontainerDocument.model_validate(data)

    if document is not None:
        image = document.image_reference
        if image is not None and require_pins:
            _record(
                results,
                image.pinned,
                f"Image {image.reference} is pinned",
                f"Image {image.reference} is not pinned to a tag or digest",
            )

        refs = document.feature_refs()
        print(f"  {len(refs)} feature(s), {len(document.mounts)} mount(s), "
              f"{len(document.vscode.extensions)} extension(s)")
        if require_pins:
            for ref in refs:
                _record(
                    results,
                    ref.pinned,
                    f"Feature {ref.id} is pinned",
                    f"Feature {ref.id} has no version pin",
                )

    if all(results):
        print("\nDocument validation passed.")
        return True

    print("\nDocument validation failed.")
    return False


def validate_project_layout(root: Path, require_pins: bool = False) -> bool:
    """Check that ``root`` holds a devcontainer document and that it validates."""
    if not root.exists():
        print(f"✗ Project path does not exist: {root}")
        return False

    path = find_document(root)
    if path is None:
        print(f"✗ No devcontainer document under {root}")
        return False

    logger.debug("Validating %s", path)
    return validate_document_file(path, require_pins=require_pins)
