"""Tests for document and project validation."""

from spate_devcontainer.validate import (
    check_document,
    validate_document_file,
    validate_project_layout,
)


def test_shipped_document_validates(shipped_document, capsys):
    assert validate_document_file(shipped_document)

    out = capsys.readouterr().out
    assert "✓ Document parsed" in out
    assert "Image" not in out
    assert "2 feature(s), 1 mount(s), 4 extension(s)" in out
    assert "Document validation passed." in out


def test_missing_document(tmp_path, capsys):
    assert not validate_document_file(tmp_path / "devcontainer.json")
    assert "✗ Document missing" in capsys.readouterr().out


def test_unparseable_document(write_document, capsys):
    path = write_document('{"image": }')
    assert not validate_document_file(path)
    assert "✗ Document invalid" in capsys.readouterr().out


def test_schema_problems_are_listed(write_document, capsys):
    path = write_document(
        {"image": 1, "mounts": [{"source": "a", "target": "relative"}]}
    )
    assert not validate_document_file(path)

    out = capsys.readouterr().out
    assert "schema problem(s)" in out
    assert "image:" in out
    assert "mounts.0.target:" in out


def test_unpinned_image_only_fails_on_request(write_document, capsys):
    path = write_document({"image": "mcr.microsoft.com/devcontainers/base"})
    assert validate_document_file(path)
    assert "Document validation passed." in capsys.readouterr().out

    assert not validate_document_file(path, require_pins=True)
    assert "✗ Image mcr.microsoft.com/devcontainers/base is not pinned" in capsys.readouterr().out


def test_pinned_image_on_request(shipped_document, capsys):
    assert validate_document_file(shipped_document, require_pins=True)
    out = capsys.readouterr().out
    assert "✓ Image mcr.microsoft.com/devcontainers/rust:1-1-bullseye is pinned" in out


def test_document_with_invalid_utf8(tmp_path, capsys):
    path = tmp_path / "devcontainer.json"
    path.write_bytes(b'{"image": "rust:1", "name": "\xff\xfe"}')

    assert not validate_document_file(path)
    out = capsys.readouterr().out
    assert "✗ Document invalid" in out
    assert "not valid UTF-8" in out


def test_feature_pins_only_checked_on_request(write_document, capsys):
    path = write_document(
        {"image": "rust:1", "features": {"ghcr.io/devcontainers/features/git": {}}}
    )
    assert validate_document_file(path)

    assert not validate_document_file(path, require_pins=True)
    assert "has no version pin" in capsys.readouterr().out


def test_check_document_valid():
    assert check_document({"image": "rust:1"}) == []


def test_check_document_reports_locations():
    problems = check_document({"name": "x"})
    assert len(problems) == 1
    assert problems[0].startswith("<document>:")
    assert "must declare an image" in problems[0]


def test_check_document_non_mapping():
    assert check_document(["rust"]) == ["<document>: top level must be a mapping"]


def test_project_layout(project_with_document):
    assert validate_project_layout(project_with_document)


def test_project_without_document(project, capsys):
    assert not validate_project_layout(project)
    assert "No devcontainer document" in capsys.readouterr().out


def test_project_path_missing(tmp_path, capsys):
    assert not validate_project_layout(tmp_path / "missing")
    assert "does not exist" in capsys.readouterr().out
