"""画像コーデックとの境界。

デコード・リサンプル・エンコードを Pillow に委譲する。
HEIC/HEIF は pillow-heif のオープナーを登録して読み込む。
"""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Tuple, Union

import pillow_heif
from PIL import Image, UnidentifiedImageError
from loguru import logger

from .errors import DecodeError, EncodeError

pillow_heif.register_heif_opener()

CodecFormat = Literal["jpeg", "png", "bmp", "tiff"]

_EXTENSION_FORMATS: Dict[str, CodecFormat] = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".bmp": "bmp",
    ".tif": "tiff",
    ".tiff": "tiff",
}

_DECODE_ERRORS = (OSError, UnidentifiedImageError, Image.DecompressionBombError, ValueError, SyntaxError)

# Pillow が 16bit グレースケールを表すモード
_SIXTEEN_BIT_MODES = frozenset({"I", "I;16", "I;16B", "I;16L", "I;16N"})
# PNG ライタがそのまま書き出せる 16bit モード
_PNG_SIXTEEN_BIT_MODES = frozenset({"I", "I;16", "I;16B"})


@dataclass
class RasterImage:
    """デコード済みの画像。1つのワーカーだけが所有する。"""

    image: Image.Image
    source_path: Path

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


def format_for_path(path: Union[str, Path]) -> CodecFormat:
    """拡張子から入力と同じ保存形式を決定する。未知の拡張子は jpeg。"""
    return _EXTENSION_FORMATS.get(Path(path).suffix.lower(), "jpeg")


def decode(path: Union[str, Path]) -> RasterImage:
    """画像ファイルを読み込んでメモリ上に展開する。"""
    source_path = Path(path)
    try:
        with Image.open(source_path) as img:
            img.load()
            image = img.copy()
    except _DECODE_ERRORS as e:
        raise DecodeError(source_path, e) from e
    logger.trace(f"デコード完了: {source_path.name} {image.width}x{image.height} mode={image.mode}")
    return RasterImage(image=image, source_path=source_path)


def resample(raster: RasterImage, size: Tuple[int, int]) -> RasterImage:
    """Lanczos フィルタで指定サイズにリサンプルする。"""
    if raster.size == size:
        return raster
    image = raster.image
    if image.mode in _SIXTEEN_BIT_MODES:
        # 16bit グレースケールは 32bit 整数モードで補間して階調を保つ
        image = image.convert("I")
    resized = image.resize(size, Image.Resampling.LANCZOS)
    return RasterImage(image=resized, source_path=raster.source_path)


def build_encoder_save_kwargs(output_format: CodecFormat, quality: int) -> Dict[str, Any]:
    """出力形式に応じたエンコーダ設定を返す。"""
    if output_format == "jpeg":
        return {
            "format": "JPEG",
            "quality": quality,
            "optimize": True,
        }
    if output_format == "png":
        # PNGはロスレス。quality指定を圧縮レベルへ変換する。
        compress_level = int(round((100 - quality) / 100 * 9))
        return {
            "format": "PNG",
            "optimize": True,
            "compress_level": max(0, min(9, compress_level)),
        }
    if output_format == "tiff":
        return {"format": "TIFF", "compression": "tiff_lzw"}
    return {"format": "BMP"}


def encode(
    raster: RasterImage,
    path: Union[str, Path],
    output_format: CodecFormat,
    quality: int,
) -> Path:
    """画像を指定形式で保存する。失敗時は EncodeError。"""
    final_path = Path(path)
    save_img = _prepare_mode(raster.image, output_format)
    save_kwargs = build_encoder_save_kwargs(output_format, quality)
    try:
        _save_with_atomic_replace(save_img, final_path, save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(final_path, e) from e
    logger.trace(f"エンコード完了: {final_path.name} format={output_format} quality={quality}")
    return final_path


def _prepare_mode(image: Image.Image, output_format: CodecFormat) -> Image.Image:
    if image.mode in _SIXTEEN_BIT_MODES:
        if output_format == "png":
            return image if image.mode in _PNG_SIXTEEN_BIT_MODES else image.convert("I")
        if output_format in ("jpeg", "bmp"):
            return _to_eight_bit_gray(image)
        return image
    if output_format == "jpeg":
        if image.mode in {"RGBA", "LA", "P", "PA"}:
            # 透過を持つ画像は白背景へ合成して保存する
            rgba = image.convert("RGBA")
            background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
            background.alpha_composite(rgba)
            return background.convert("RGB")
        if image.mode not in {"RGB", "L"}:
            return image.convert("RGB")
        return image
    if output_format == "png":
        if image.mode not in {"1", "L", "LA", "I", "P", "RGB", "RGBA"}:
            return image.convert("RGBA" if "A" in image.getbands() else "RGB")
        return image
    if output_format == "bmp":
        if image.mode not in {"1", "L", "P", "RGB", "RGBA"}:
            return image.convert("RGBA" if "A" in image.getbands() else "RGB")
        return image
    return image


def _to_eight_bit_gray(image: Image.Image) -> Image.Image:
    """16bit グレースケールを上位8bitに縮めて L モードにする。"""
    return image.convert("I").point(lambda v: v * (1 / 256)).convert("L")


def _build_temp_save_path(target_path: Path) -> Path:
    """同一ディレクトリ内の一時保存パスを作る。"""
    base_name = target_path.name or "picture_output"
    token = f"{os.getpid()}_{time.time_ns()}_{uuid.uuid4().hex[:10]}"
    return target_path.with_name(f".{base_name}.{token}.tmp")


def _save_with_atomic_replace(
    save_img: Image.Image,
    final_path: Path,
    save_kwargs: Dict[str, Any],
) -> None:
    """保存を一時ファイル→置換で実行し、壊れた最終ファイルを防ぐ。"""
    tmp_path = _build_temp_save_path(final_path)
    try:
        # 一時ファイルの拡張子に依存しないよう format を明示している
        save_img.save(tmp_path, **save_kwargs)
        os.replace(str(tmp_path), str(final_path))
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                logger.warning(f"一時保存ファイルの削除に失敗: {tmp_path}")
