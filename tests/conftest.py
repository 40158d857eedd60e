#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
pytest設定ファイル
共通のフィクスチャやテスト設定を定義
"""

from pathlib import Path
from typing import Callable, Optional, Tuple

import pytest
from loguru import logger
from PIL import Image


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path, monkeypatch):
    """ログの保存先をテスト用の一時ディレクトリに向ける"""
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("PICTURE_RESIZER_LOG_DIR", str(log_dir))
    yield log_dir
    # CLIテストが追加したシンクを閉じる
    logger.remove()


@pytest.fixture
def make_image() -> Callable[..., Path]:
    """指定パスにサンプル画像を作成するフィクスチャ"""

    def _make(
        path: Path,
        size: Tuple[int, int] = (64, 32),
        mode: str = "RGB",
        image_format: Optional[str] = None,
        color=None,
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if color is None:
            color = (255, 0, 0, 128) if mode == "RGBA" else (255, 0, 0)
        img = Image.new(mode, size, color=color)
        img.save(path, format=image_format)
        return path

    return _make


@pytest.fixture
def sample_tree(tmp_path, make_image):
    """a.jpg / b.heic / c.png / d.txt / sub/e.jpg の入力ツリー

    b.heic の中身は PNG（Pillowは内容で形式を判別するためデコードできる）。
    """
    root = tmp_path / "input"
    make_image(root / "a.jpg", size=(400, 200))
    make_image(root / "b.heic", size=(300, 300), image_format="PNG")
    make_image(root / "c.png", size=(100, 50))
    (root / "d.txt").write_text("not an image", encoding="utf-8")
    make_image(root / "sub" / "e.jpg", size=(50, 100))
    return root
