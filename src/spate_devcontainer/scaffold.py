"""Scaffolding a devcontainer directory into a project and keeping it current."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from . import config
from .document import dump_document, find_document, load_document
from .spec import DevcontainerDocument, default_document

logger = logging.getLogger(__name__)


def render_templates(
    scaffold_roots: List[Path],
    context: Dict[str, Any],
    env: Environment,
) -> Dict[Path, str]:
    """
    Renders all templates from the scaffold roots using the provided context.
    Returns a dict of {relative_output_path: content}.
    Files that render to whitespace only are omitted.
    """
    results = {}
    # Base first, overlays later overwrite
    for scaffold_root in scaffold_roots:
        # Each root gets its own loader so overlays never resolve to base files
        root_env = env.overlay(loader=FileSystemLoader(str(scaffold_root.parent)))
        for template_file in sorted(scaffold_root.rglob("*")):
            if template_file.is_dir():
                continue

            rel_path = template_file.relative_to(scaffold_root.parent)
            template = root_env.get_template(str(rel_path).replace(os.sep, "/"))
            rendered = template.render(**context)

            rel_output = template_file.relative_to(scaffold_root)
            if rel_output.suffix == ".jinja2":
                rel_output = rel_output.with_suffix("")

            if not rendered.strip():
                # An overlay that renders empty hides the base file
                results.pop(rel_output, None)
                continue

            results[rel_output] = rendered

    return results


def _scaffold_roots(
    templates_dir: Optional[Path], overlays: Optional[Sequence[Path]]
) -> List[Path]:
    templates_dir = templates_dir or config.TEMPLATES_DIR
    base = templates_dir / config.SCAFFOLD_DIRNAME
    if not base.is_dir():
        raise RuntimeError(f"Base template directory not found: {base}")

    roots = [base]
    for overlay in overlays or []:
        overlay_root = overlay / config.SCAFFOLD_DIRNAME
        if overlay_root.is_dir():
            roots.append(overlay_root)
        else:
            logger.warning("Overlay %s has no %s directory; skipping", overlay, config.SCAFFOLD_DIRNAME)
    return roots


def _template_context(document: DevcontainerDocument) -> Dict[str, Any]:
    return {
        "document": document,
        "name": document.name,
        "image": document.image_reference,
        "features": document.feature_refs(),
        "mounts": document.mounts,
        "extensions": document.vscode.extensions,
        "settings": document.vscode.settings,
    }


def render_scaffold(
    document: DevcontainerDocument,
    templates_dir: Optional[Path] = None,
    overlays: Optional[Sequence[Path]] = None,
) -> Dict[Path, str]:
    """Render the .devcontainer directory contents for ``document``."""
    roots = _scaffold_roots(templates_dir, overlays)
    env = Environment(
        loader=FileSystemLoader(str(roots[0].parent)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    rendered = render_templates(roots, _template_context(document), env)
    # The document itself always comes from the model.
    rendered[Path(config.DOCUMENT_NAME)] = dump_document(document)
    return rendered


def scaffold_project(
    target: Path,
    document: Optional[DevcontainerDocument] = None,
    templates_dir: Optional[Path] = None,
    overlays: Optional[Sequence[Path]] = None,
    force: bool = False,
) -> List[Path]:
    """
    Write a .devcontainer directory into ``target``.

    Returns the written paths. Refuses to replace an existing document
    unless ``force`` is set.
    """
    document = document or default_document()
    devcontainer_dir = target / config.DEVCONTAINER_DIR
    # Any recognised location counts, not just .devcontainer/devcontainer.json
    document_path = find_document(target)
    if document_path is not None and not force:
        raise RuntimeError(
            f"{document_path} already exists; pass --force to overwrite it"
        )

    rendered = render_scaffold(document, templates_dir, overlays)
    written = []
    for rel_path, content in rendered.items():
        out_path = devcontainer_dir / rel_path
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(content, encoding="utf-8")
        logger.info("Wrote %s", out_path)
        written.append(out_path)
    return written


def update_project(
    target: Path,
    document: Optional[DevcontainerDocument] = None,
    templates_dir: Optional[Path] = None,
    overlays: Optional[Sequence[Path]] = None,
    dry_run: bool = False,
) -> bool:
    """
    Bring the .devcontainer directory of ``target`` in line with ``document``.

    Without a document the one already on disk is used (or the default when
    there is none), so only the companion files get refreshed. The document
    counts as changed only when its parsed content differs; comments and
    formatting do not matter.
    Returns True if changes were applied (or would be applied in dry-run).
    """
    if not target.exists():
        raise RuntimeError(f"Project path not found: {target}")

    existing_path = find_document(target)
    if document is None:
        document = load_document(existing_path) if existing_path else default_document()

    devcontainer_dir = target / config.DEVCONTAINER_DIR
    rendered = render_scaffold(document, templates_dir, overlays)
    changes = []

    print(f"\n[update] Checking for drift in {devcontainer_dir}...")

    for rel_path, new_content in rendered.items():
        target_file = devcontainer_dir / rel_path

        if rel_path == Path(config.DOCUMENT_NAME) and existing_path is not None:
            # The document may live elsewhere (e.g. .devcontainer.json).
            target_file = existing_path
            current = load_document(existing_path).to_devcontainer_dict()
            if current != document.to_devcontainer_dict():
                changes.append(("MOD", target_file, new_content))
            continue

        if not target_file.exists():
            changes.append(("ADD", target_file, new_content))
            continue

        if target_file.read_text(encoding="utf-8") != new_content:
            changes.append(("MOD", target_file, new_content))

    if not changes:
        print("[update] No changes detected. Dev container is up to date.")
        return False

    print(f"[update] Found {len(changes)} changes:")
    for action, path, _ in changes:
        print(f"  {action} {path}")

    if dry_run:
        print("[update] Dry run complete. Run without --dry-run to apply changes.")
        return True

    print("[update] Applying changes...")
    for action, path, content in changes:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        print(f"  Applied {action} {path}")

    return True
