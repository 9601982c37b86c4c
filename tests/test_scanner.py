import os

import pytest

from video_encoder.errors import DocumentError
from video_encoder.scanner import discover_documents, find_documents, load_document


def test_find_empty_directory(tmp_path):
    """Test scanning empty directory returns empty list."""
    assert find_documents(str(tmp_path)) == []


def test_find_only_exact_filename(tmp_path):
    """Test only files named VideoEncoder.yaml are picked up."""
    (tmp_path / "VideoEncoder.yaml").write_text("[]")
    (tmp_path / "videoencoder.yaml").write_text("[]")
    (tmp_path / "VideoEncoder.yml").write_text("[]")
    (tmp_path / "notes.txt").write_text("")

    result = find_documents(str(tmp_path))
    assert result == [tmp_path / "VideoEncoder.yaml"]


def test_find_recursive_nested_dirs(tmp_path):
    """Test recursive scanning finds nested job files, sorted."""
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "VideoEncoder.yaml").write_text("[]")
    (tmp_path / "a" / "deep").mkdir(parents=True)
    (tmp_path / "a" / "deep" / "VideoEncoder.yaml").write_text("[]")

    result = find_documents(str(tmp_path), recursive=True)
    assert result == [
        tmp_path / "a" / "deep" / "VideoEncoder.yaml",
        tmp_path / "b" / "VideoEncoder.yaml",
    ]


def test_find_non_recursive_ignores_subdirs(tmp_path):
    """Test shallow scan only finds the top-level job file."""
    (tmp_path / "VideoEncoder.yaml").write_text("[]")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "VideoEncoder.yaml").write_text("[]")

    result = find_documents(str(tmp_path), recursive=False)
    assert result == [tmp_path / "VideoEncoder.yaml"]


def test_find_custom_filename(tmp_path):
    (tmp_path / "Jobs.yaml").write_text("[]")

    assert find_documents(str(tmp_path), filename="Jobs.yaml") == [tmp_path / "Jobs.yaml"]


def test_find_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_documents(str(tmp_path / "missing"))


def test_load_document_keeps_strings(tmp_path):
    """Scalars stay text so leading zeros survive."""
    path = tmp_path / "VideoEncoder.yaml"
    path.write_text(
        "- Name: Show\n"
        "  Seasons:\n"
        "    - Season: 01\n"
        "      IntakeFiles: []\n"
    )

    document = load_document(path)
    assert document[0]["Seasons"][0]["Season"] == "01"


def test_load_document_parse_error(tmp_path):
    path = tmp_path / "VideoEncoder.yaml"
    path.write_text("- Name: [unclosed\n")

    with pytest.raises(DocumentError) as exc_info:
        load_document(path)
    assert exc_info.value.document == path
    assert "Error parsing config" in str(exc_info.value)


def test_discover_documents(tmp_path, write_document):
    write_document(tmp_path / "show" / "VideoEncoder.yaml", [{"Name": "Show"}])
    write_document(tmp_path / "film" / "VideoEncoder.yaml", [{"Name": "Film"}])

    documents = discover_documents(str(tmp_path))

    assert list(documents) == [
        tmp_path / "film" / "VideoEncoder.yaml",
        tmp_path / "show" / "VideoEncoder.yaml",
    ]
    assert documents[tmp_path / "show" / "VideoEncoder.yaml"] == [{"Name": "Show"}]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_discover_duplicate_through_symlink(tmp_path, write_document):
    """The same job file reachable twice aborts discovery."""
    write_document(tmp_path / "real" / "VideoEncoder.yaml", [{"Name": "Show"}])
    os.symlink(tmp_path / "real", tmp_path / "alias", target_is_directory=True)

    with pytest.raises(DocumentError, match="Duplicate config file"):
        discover_documents(str(tmp_path), recursive=True)


def test_discover_symlink_ignored_when_shallow(tmp_path, write_document):
    write_document(tmp_path / "real" / "VideoEncoder.yaml", [{"Name": "Show"}])
    os.symlink(tmp_path / "real", tmp_path / "alias", target_is_directory=True)

    assert discover_documents(str(tmp_path), recursive=False) == {}


def test_find_orders_by_path_components(tmp_path):
    """A directory sorts before its longer-named siblings ('Show' before 'Show 2')."""
    (tmp_path / "Show 2").mkdir()
    (tmp_path / "Show 2" / "VideoEncoder.yaml").write_text("[]")
    (tmp_path / "Show").mkdir()
    (tmp_path / "Show" / "VideoEncoder.yaml").write_text("[]")

    result = find_documents(str(tmp_path), recursive=True)
    assert result == [
        tmp_path / "Show" / "VideoEncoder.yaml",
        tmp_path / "Show 2" / "VideoEncoder.yaml",
    ]
