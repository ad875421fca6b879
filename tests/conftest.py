import json
import shutil
import pytest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SHIPPED_DOCUMENT = REPO_ROOT / ".devcontainer" / "devcontainer.json"


@pytest.fixture
def shipped_document() -> Path:
    """Path to the devcontainer document checked into this repository."""
    return SHIPPED_DOCUMENT


@pytest.fixture
def project(tmp_path):
    """
    An empty project directory to scaffold into.
    """
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def project_with_document(project, shipped_document):
    """
    A project carrying a copy of the shipped (commented) devcontainer document.
    """
    target = project / ".devcontainer"
    target.mkdir()
    shutil.copy(shipped_document, target / "devcontainer.json")
    return project


@pytest.fixture
def write_document(tmp_path):
    """
    Writes a mapping (or raw text) as a devcontainer document and returns its path.
    """

    def _write(content, name="devcontainer.json"):
        path = tmp_path / name
        text = content if isinstance(content, str) else json.dumps(content, indent=2)
        path.write_text(text, encoding="utf-8")
        return path

    return _write
