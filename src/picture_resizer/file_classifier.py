"""
入力ファイルの探索と分類

ディレクトリを走査して対応拡張子の画像を集め、
HEIC/HEIF（形式変換が必要）とそれ以外（形式を維持できる）に分けます。
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from .errors import DiscoveryError, NotFoundError

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".heic", ".heif"})
HEIC_EXTENSIONS = frozenset({".heic", ".heif"})


@dataclass(frozen=True)
class FileSet:
    """分類結果。2つの列は互いに素"""

    heic_like: Tuple[Path, ...]
    regular: Tuple[Path, ...]

    @property
    def total(self) -> int:
        return len(self.heic_like) + len(self.regular)

    @property
    def has_heic(self) -> bool:
        return bool(self.heic_like)

    def all_paths(self) -> List[Path]:
        return list(self.heic_like) + list(self.regular)


def is_image_file(path: Union[str, Path]) -> bool:
    """対応拡張子の画像ファイルかチェック"""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def is_heic_like(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() in HEIC_EXTENSIONS


def discover(
    root_dir: Union[str, Path],
    recursive: bool = False,
    *,
    exclude: Optional[Iterable[Union[str, Path]]] = None,
) -> List[Path]:
    """
    ディレクトリから画像ファイルを探索します

    Args:
        root_dir: 入力ディレクトリ
        recursive: サブディレクトリも探索するか
        exclude: 探索しないディレクトリ（出力先など）

    Returns:
        List[Path]: 見つかった画像ファイル（走査順）

    Raises:
        NotFoundError: 入力ディレクトリが存在しない場合
        DiscoveryError: 入力ディレクトリを読み取れない場合
    """
    root = Path(root_dir)
    if not root.exists():
        raise NotFoundError(f"入力ディレクトリが存在しません: {root}")
    if not root.is_dir():
        raise NotFoundError(f"入力パスがディレクトリではありません: {root}")

    excluded = {_resolved(p) for p in (exclude or ())}
    root_key = _resolved(root)

    def on_walk_error(error: OSError) -> None:
        if error.filename is not None and _resolved(error.filename) == root_key:
            raise DiscoveryError(f"入力ディレクトリを読み取れません: {root} ({error})") from error
        logger.warning(f"ディレクトリを読み取れないためスキップします: {error.filename} ({error})")

    found: List[Path] = []
    for current, dirnames, filenames in os.walk(root, onerror=on_walk_error):
        if not recursive:
            # ルート直下以外は丸ごとスキップする
            dirnames.clear()
        else:
            dirnames[:] = sorted(
                d for d in dirnames if _resolved(Path(current) / d) not in excluded
            )

        for name in sorted(filenames):
            path = Path(current) / name
            if is_image_file(path):
                found.append(path)

    logger.debug(f"探索完了: {root} recursive={recursive} 件数={len(found)}")
    return found


def classify(paths: Sequence[Union[str, Path]]) -> FileSet:
    """拡張子で HEIC/HEIF とそれ以外に分ける"""
    ordered = tuple(Path(p) for p in paths)
    heic_like = tuple(p for p in ordered if is_heic_like(p))
    regular = tuple(p for p in ordered if not is_heic_like(p))
    return FileSet(heic_like=heic_like, regular=regular)


def _resolved(path: Union[str, Path]) -> Path:
    try:
        return Path(path).resolve()
    except OSError:
        return Path(os.path.abspath(path))
