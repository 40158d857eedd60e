"""
リサイズ計算モジュール

最大幅・最大高さの枠に収まるよう、縦横比を保ったまま出力サイズを計算します。
拡大は行いません。実際のリサンプルはコーデックアダプタに委譲します。
"""

from __future__ import annotations

from typing import Tuple

from loguru import logger

from . import codec_adapter
from .codec_adapter import RasterImage


def compute_target_size(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """
    枠に収まる出力サイズを計算します

    Args:
        width: 元画像の幅
        height: 元画像の高さ
        max_width: 最大幅
        max_height: 最大高さ

    Returns:
        Tuple[int, int]: (新しい幅, 新しい高さ)。枠内なら元のサイズのまま

    Raises:
        ValueError: いずれかの値が0以下の場合
    """
    for name, value in (("width", width), ("height", height), ("max_width", max_width), ("max_height", max_height)):
        if value <= 0:
            raise ValueError(f"{name} は1以上である必要があります: {value}")

    if width <= max_width and height <= max_height:
        return width, height

    # 浮動小数の誤差で1px小さくならないよう整数演算で切り捨てる
    if max_width * height <= max_height * width:
        new_width, new_height = max_width, height * max_width // width
    else:
        new_width, new_height = width * max_height // height, max_height

    # 極端な縦横比で0に切り捨てられた辺は1pxに丸める
    return max(1, new_width), max(1, new_height)


def resize_image(raster: RasterImage, max_width: int, max_height: int) -> RasterImage:
    """枠に収まるようにリサイズする。サイズが変わらなければ同じ画像を返す。"""
    target = compute_target_size(raster.width, raster.height, max_width, max_height)
    if target == raster.size:
        logger.debug(f"リサイズ不要: {raster.source_path.name} {raster.width}x{raster.height}")
        return raster
    logger.debug(
        f"リサイズ: {raster.source_path.name} {raster.width}x{raster.height} → {target[0]}x{target[1]}"
    )
    return codec_adapter.resample(raster, target)
