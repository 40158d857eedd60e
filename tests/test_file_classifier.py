from __future__ import annotations

from pathlib import Path

import pytest

from picture_resizer.errors import DiscoveryError, NotFoundError
from picture_resizer.file_classifier import classify, discover, is_image_file


def _names(paths, root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in paths}


def test_discover_non_recursive_skips_subdirectories(sample_tree: Path) -> None:
    found = discover(sample_tree, recursive=False)
    assert _names(found, sample_tree) == {"a.jpg", "b.heic", "c.png"}


def test_discover_recursive_includes_nested_images(sample_tree: Path) -> None:
    found = discover(sample_tree, recursive=True)
    assert _names(found, sample_tree) == {"a.jpg", "b.heic", "c.png", "sub/e.jpg"}


def test_discover_matches_extensions_case_insensitively(tmp_path: Path) -> None:
    for name in ["A.JPG", "b.Jpeg", "c.PNG", "d.bmp", "e.TIF", "f.tiff", "g.HEIF", "h.gif", "i.webp", "noext"]:
        (tmp_path / name).write_bytes(b"x")

    found = discover(tmp_path)
    assert _names(found, tmp_path) == {"A.JPG", "b.Jpeg", "c.PNG", "d.bmp", "e.TIF", "f.tiff", "g.HEIF"}


def test_discover_ignores_directories_named_like_images(tmp_path: Path) -> None:
    (tmp_path / "folder.jpg").mkdir()
    (tmp_path / "folder.jpg" / "inner.png").write_bytes(b"x")

    assert discover(tmp_path, recursive=False) == []
    assert _names(discover(tmp_path, recursive=True), tmp_path) == {"folder.jpg/inner.png"}


def test_discover_excludes_given_directories(tmp_path: Path) -> None:
    (tmp_path / "keep").mkdir()
    (tmp_path / "output").mkdir()
    (tmp_path / "keep" / "a.jpg").write_bytes(b"x")
    (tmp_path / "output" / "a.jpg").write_bytes(b"x")

    found = discover(tmp_path, recursive=True, exclude=[tmp_path / "output"])
    assert _names(found, tmp_path) == {"keep/a.jpg"}


def test_discover_missing_directory_raises_not_found(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        discover(tmp_path / "missing")


def test_discover_file_as_root_raises_not_found(tmp_path: Path) -> None:
    file_path = tmp_path / "a.jpg"
    file_path.write_bytes(b"x")

    with pytest.raises(DiscoveryError):
        discover(file_path)


def test_classify_partitions_heic_like() -> None:
    paths = [Path("a.jpg"), Path("b.HEIC"), Path("c.png"), Path("d.heif")]
    file_set = classify(paths)

    assert set(file_set.heic_like) == {Path("b.HEIC"), Path("d.heif")}
    assert set(file_set.regular) == {Path("a.jpg"), Path("c.png")}
    assert not set(file_set.heic_like) & set(file_set.regular)
    assert file_set.total == 4
    assert file_set.has_heic


def test_classify_without_heic() -> None:
    file_set = classify([Path("a.jpg"), Path("b.tif")])
    assert file_set.heic_like == ()
    assert not file_set.has_heic
    assert set(file_set.all_paths()) == {Path("a.jpg"), Path("b.tif")}


def test_is_image_file() -> None:
    assert is_image_file("x/y/photo.JPEG")
    assert not is_image_file("notes.txt")
