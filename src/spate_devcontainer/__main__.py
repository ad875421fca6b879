"""CLI for inspecting, validating and editing the spate devcontainer document."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from . import config
from .document import (
    DocumentError,
    dump_document,
    find_document,
    load_document,
    save_document,
)
from .scaffold import scaffold_project, update_project
from .spec import MountSpec
from .validate import (
    format_validation_error,
    validate_document_file,
    validate_project_layout,
)

logger = logging.getLogger("spate-devcontainer")


def _resolve_document_path(path: Optional[str]) -> Path:
    if path:
        candidate = Path(path).expanduser().resolve()
        if candidate.is_dir():
            found = find_document(candidate)
            if found is None:
                raise SystemExit(f"Error: No devcontainer document under {candidate}")
            return found
        return candidate

    found = find_document(Path.cwd())
    if found is None:
        raise SystemExit(
            "Error: No devcontainer document found; pass a path or run 'init' first"
        )
    return found


def _parse_value(raw: str) -> Any:
    """Interpret CLI values as JSON when possible, else as plain strings."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _parse_options(pairs: Optional[list[str]]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SystemExit(f"Error: Option '{pair}' must look like key=value")
        options[key] = _parse_value(value)
    return options


def cmd_show(args: argparse.Namespace) -> int:
    path = _resolve_document_path(args.path)
    document = load_document(path)
    print(dump_document(document, args.format, args.indent), end="")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    if args.path:
        target = Path(args.path).expanduser().resolve()
    else:
        target = Path.cwd()

    if target.is_dir():
        ok = validate_project_layout(target, require_pins=args.require_pins)
    else:
        ok = validate_document_file(target, require_pins=args.require_pins)
    return 0 if ok else 1


def cmd_features(args: argparse.Namespace) -> int:
    path = _resolve_document_path(args.path)
    document = load_document(path)
    refs = document.feature_refs()
    if not refs:
        print("No features declared")
        return 0
    for ref in refs:
        options = ", ".join(
            f"{key}={json.dumps(value)}" for key, value in ref.options.items()
        )
        print(f"{ref.name}\t{ref.version or '-'}\t{ref.id}\t{options or '-'}")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.target or ".").expanduser().resolve()
    written = scaffold_project(
        target,
        templates_dir=Path(args.templates_root).resolve() if args.templates_root else None,
        overlays=[Path(p).resolve() for p in (args.template_overlay or [])],
        force=args.force,
    )
    for path in written:
        print(f"Wrote {path}")
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    target = Path(args.target or ".").expanduser().resolve()
    changed = update_project(
        target,
        templates_dir=Path(args.templates_root).resolve() if args.templates_root else None,
        overlays=[Path(p).resolve() for p in (args.template_overlay or [])],
        dry_run=args.dry_run,
    )
    # A dry run that finds drift is a failed check
    return 1 if (changed and args.dry_run) else 0


def _edit(args: argparse.Namespace, action) -> int:
    path = _resolve_document_path(args.path)
    document = action(load_document(path))
    save_document(path, document)
    print(f"Updated {path}")
    return 0


def cmd_feature_add(args: argparse.Namespace) -> int:
    options = _parse_options(args.option)
    return _edit(args, lambda doc: doc.add_feature(args.feature, options))


def cmd_feature_remove(args: argparse.Namespace) -> int:
    return _edit(args, lambda doc: doc.remove_feature(args.feature))


def cmd_mount_add(args: argparse.Namespace) -> int:
    mount = MountSpec(source=args.source or "", target=args.target, type=args.type)
    return _edit(args, lambda doc: doc.add_mount(mount))


def cmd_extension_add(args: argparse.Namespace) -> int:
    return _edit(args, lambda doc: doc.add_extension(args.extension))


def cmd_setting_set(args: argparse.Namespace) -> int:
    value = _parse_value(args.value)
    return _edit(args, lambda doc: doc.set_setting(args.key, value))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spate-devcontainer",
        description="Inspect, validate and edit the spate devcontainer document",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Log level (default: {config.LOG_LEVEL})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Print the rendered document")
    show.add_argument("path", nargs="?", help="Document or project path")
    show.add_argument("--format", choices=("json", "yaml"), default="json")
    show.add_argument("--indent", type=int, default=2)
    show.set_defaults(func=cmd_show)

    validate = subparsers.add_parser("validate", help="Validate a document")
    validate.add_argument("path", nargs="?", help="Document or project path")
    validate.add_argument(
        "--require-pins",
        action="store_true",
        help="Fail when the image or a feature has no version pin",
    )
    validate.set_defaults(func=cmd_validate)

    features = subparsers.add_parser("features", help="List declared features")
    features.add_argument("path", nargs="?", help="Document or project path")
    features.set_defaults(func=cmd_features)

    for name, func, help_text in (
        ("init", cmd_init, "Scaffold a .devcontainer directory"),
        ("update", cmd_update, "Refresh the .devcontainer directory"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("target", nargs="?", help="Project directory (default: cwd)")
        sub.add_argument("--templates-root", help="Override the template root")
        sub.add_argument(
            "--template-overlay",
            action="append",
            help="Overlay template root (may be given more than once)",
        )
        if name == "init":
            sub.add_argument("--force", action="store_true", help="Overwrite an existing document")
        else:
            sub.add_argument("--dry-run", action="store_true", help="Only report drift")
        sub.set_defaults(func=func)

    # --- Edit commands ---
    feature = subparsers.add_parser("feature", help="Add or remove features")
    feature_subs = feature.add_subparsers(dest="feature_command", required=True)

    feature_add = feature_subs.add_parser("add", help="Declare a feature")
    feature_add.add_argument("feature", help="Feature identifier, e.g. ghcr.io/devcontainers/features/git:1")
    feature_add.add_argument(
        "-o", "--option", action="append", help="Feature option as key=value"
    )
    feature_add.add_argument("--path", help="Document or project path")
    feature_add.set_defaults(func=cmd_feature_add)

    feature_remove = feature_subs.add_parser("remove", help="Remove a feature")
    feature_remove.add_argument("feature", help="Feature identifier")
    feature_remove.add_argument("--path", help="Document or project path")
    feature_remove.set_defaults(func=cmd_feature_remove)

    mount = subparsers.add_parser("mount", help="Manage mounts")
    mount_subs = mount.add_subparsers(dest="mount_command", required=True)
    mount_add = mount_subs.add_parser("add", help="Add a mount")
    mount_add.add_argument("target", help="Absolute path inside the container")
    mount_add.add_argument("--source", help="Volume name or host path")
    mount_add.add_argument("--type", choices=("bind", "volume", "tmpfs"), default="volume")
    mount_add.add_argument("--path", help="Document or project path")
    mount_add.set_defaults(func=cmd_mount_add)

    extension = subparsers.add_parser("extension", help="Manage recommended extensions")
    extension_subs = extension.add_subparsers(dest="extension_command", required=True)
    extension_add = extension_subs.add_parser("add", help="Recommend an extension")
    extension_add.add_argument("extension", help="Extension id, e.g. rust-lang.rust-analyzer")
    extension_add.add_argument("--path", help="Document or project path")
    extension_add.set_defaults(func=cmd_extension_add)

    setting = subparsers.add_parser("setting", help="Manage editor settings")
    setting_subs = setting.add_subparsers(dest="setting_command", required=True)
    setting_set = setting_subs.add_parser("set", help="Set an editor setting")
    setting_set.add_argument("key", help="Setting key")
    setting_set.add_argument("value", help="Setting value (parsed as JSON when possible)")
    setting_set.add_argument("--path", help="Document or project path")
    setting_set.set_defaults(func=cmd_setting_set)

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    level_name = "DEBUG" if args.verbose else (args.log_level or config.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)
    logger.debug("Running %s", args.command)

    try:
        result = args.func(args)
    except ValidationError as exc:
        print("Error: document does not match the devcontainer schema", file=sys.stderr)
        for problem in format_validation_error(exc):
            print(f"  {problem}", file=sys.stderr)
        return 1
    except KeyError as exc:
        print(f"Error: {exc.args[0]}", file=sys.stderr)
        return 1
    except (DocumentError, RuntimeError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    # Commands may return an exit code; treat None as success
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    raise SystemExit(main())
