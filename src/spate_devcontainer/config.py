"""Runtime configuration; override via environment variables."""

from __future__ import annotations

import os
from pathlib import Path

PACKAGE_TEMPLATES = Path(__file__).resolve().parent / "templates"

# Root holding the scaffold templates.
# Override with SPATE_DEVCONTAINER_TEMPLATES=/path/to/templates
TEMPLATES_DIR = Path(os.environ.get("SPATE_DEVCONTAINER_TEMPLATES", PACKAGE_TEMPLATES))

# Log level used by the CLI when neither --verbose nor --log-level is given.
LOG_LEVEL = os.environ.get("SPATE_DEVCONTAINER_LOG_LEVEL", "WARNING").upper()

DEVCONTAINER_DIR = ".devcontainer"
DOCUMENT_NAME = "devcontainer.json"
SCAFFOLD_DIRNAME = "devcontainer_scaffold"
