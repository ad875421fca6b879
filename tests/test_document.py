"""Tests for reading, writing and locating devcontainer documents."""

import pytest
import yaml

from spate_devcontainer.document import (
    DocumentError,
    dump_document,
    find_document,
    load_document,
    loads_data,
    loads_document,
    read_data,
    save_document,
)
from spate_devcontainer.spec import default_document


def test_shipped_document_loads(shipped_document):
    """
    The repository's own document parses despite its comments and trailing comma.
    """
    doc = load_document(shipped_document)

    assert doc.name == "Rust"
    assert doc.image == "mcr.microsoft.com/devcontainers/rust:1-1-bullseye"
    assert len(doc.mounts) == 1
    assert doc.mounts[0].target == "/usr/local/cargo"
    assert isinstance(doc.features, dict)
    assert len(doc.features) == 2
    assert isinstance(doc.vscode.settings, dict)
    assert isinstance(doc.vscode.extensions, list)


def test_shipped_document_matches_default(shipped_document):
    doc = load_document(shipped_document)
    assert doc.to_devcontainer_dict() == default_document().to_devcontainer_dict()


def test_rendered_document_parses_back():
    doc = default_document()
    reparsed = loads_document(dump_document(doc))
    assert reparsed.to_devcontainer_dict() == doc.to_devcontainer_dict()


def test_comments_inside_strings_are_kept():
    data = loads_data(
        '{\n  // line comment\n  "url": "https://example.com/a", /* block */\n'
        '  "glob": "**/target/**"\n}'
    )
    assert data == {"url": "https://example.com/a", "glob": "**/target/**"}


def test_trailing_commas_are_ignored():
    data = loads_data('{"a": [1, 2, ], "b": {"c": "x,]"}, }')
    assert data == {"a": [1, 2], "b": {"c": "x,]"}}


def test_escaped_quotes_in_strings():
    data = loads_data('{"a": "say \\"hi\\" // not a comment"}')
    assert data == {"a": 'say "hi" // not a comment'}


def test_invalid_json_reports_line():
    with pytest.raises(DocumentError, match="line 3"):
        loads_data('{\n  // comment\n  "image": rust\n}', source="devcontainer.json")


def test_unterminated_comment_fails():
    with pytest.raises(DocumentError, match="unterminated comment starting on line 2"):
        loads_data('{\n  /* never closed\n  "image": "rust"\n}')


def test_empty_document_fails():
    with pytest.raises(DocumentError, match="is empty"):
        loads_data("   // nothing here\n")
    with pytest.raises(DocumentError, match="is empty"):
        loads_data("", fmt="yaml")


def test_non_mapping_document_fails():
    with pytest.raises(DocumentError, match="top level must be a mapping, got list"):
        loads_data('["rust"]')


def test_unsupported_format_fails():
    with pytest.raises(DocumentError, match="Unsupported format"):
        loads_data("{}", fmt="toml")


def test_yaml_document(tmp_path):
    path = tmp_path / "devcontainer.yaml"
    path.write_text(
        yaml.safe_dump(default_document().to_devcontainer_dict(), sort_keys=False),
        encoding="utf-8",
    )
    doc = load_document(path)
    assert doc.image == "mcr.microsoft.com/devcontainers/rust:1-1-bullseye"


def test_invalid_yaml_fails(tmp_path):
    path = tmp_path / "devcontainer.yml"
    path.write_text("image: [unclosed\n", encoding="utf-8")
    with pytest.raises(DocumentError, match="Failed to parse"):
        read_data(path)


def test_missing_file_fails(tmp_path):
    with pytest.raises(DocumentError, match="Cannot read"):
        read_data(tmp_path / "missing.json")


def test_non_utf8_file_fails(tmp_path):
    path = tmp_path / "devcontainer.json"
    path.write_bytes(b'{"image": "rust:1", "name": "\xff\xfe"}')
    with pytest.raises(DocumentError, match="not valid UTF-8"):
        read_data(path)


def test_byte_order_mark_is_skipped(tmp_path):
    assert loads_data("\ufeff{\"image\": \"rust:1\"}") == {"image": "rust:1"}

    path = tmp_path / "devcontainer.json"
    path.write_text("\ufeff// saved by an editor\n{\"image\": \"rust:1\"}\n", encoding="utf-8")
    assert load_document(path).image == "rust:1"


def test_dump_yaml_keeps_key_order():
    text = dump_document(default_document(), fmt="yaml")
    keys = list(yaml.safe_load(text))
    assert keys == ["name", "image", "mounts", "features", "customizations"]


def test_save_document(tmp_path):
    path = tmp_path / "nested" / ".devcontainer" / "devcontainer.json"
    save_document(path, default_document())

    text = path.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert load_document(path).image == default_document().image


def test_find_document_prefers_devcontainer_dir(tmp_path):
    (tmp_path / ".devcontainer").mkdir()
    (tmp_path / ".devcontainer" / "devcontainer.json").write_text("{}", encoding="utf-8")
    (tmp_path / ".devcontainer.json").write_text("{}", encoding="utf-8")

    assert find_document(tmp_path) == tmp_path / ".devcontainer" / "devcontainer.json"


def test_find_document_root_file(tmp_path):
    (tmp_path / ".devcontainer.json").write_text("{}", encoding="utf-8")
    assert find_document(tmp_path) == tmp_path / ".devcontainer.json"


def test_find_document_in_subfolder(tmp_path):
    for name in ("rust", "python"):
        folder = tmp_path / ".devcontainer" / name
        folder.mkdir(parents=True)
        (folder / "devcontainer.json").write_text("{}", encoding="utf-8")

    assert find_document(tmp_path) == tmp_path / ".devcontainer" / "python" / "devcontainer.json"


def test_find_document_missing(tmp_path):
    assert find_document(tmp_path) is None
