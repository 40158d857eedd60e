"""
画像処理設定モジュール

一括処理の設定を不変の値として一元管理します。
値の検証は生成時に一度だけ行い、不正な値は処理開始前に ValidationError で失敗させます。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union

from .errors import ValidationError

DEFAULT_INPUT_DIR = "."
DEFAULT_OUTPUT_DIR = "./output"
DEFAULT_FORMAT = "jpg"
DEFAULT_MAX_WIDTH = 1920
DEFAULT_MAX_HEIGHT = 1920
DEFAULT_QUALITY = 85
DEFAULT_WORKERS = 4

QUALITY_RANGE = (1, 100)


class OutputFormat(str, Enum):
    """変換モードでの出力形式"""

    JPEG = "jpeg"
    PNG = "png"

    @property
    def extension(self) -> str:
        return ".jpg" if self is OutputFormat.JPEG else ".png"

    @classmethod
    def parse(cls, value: Union[str, "OutputFormat"]) -> "OutputFormat":
        """'jpg' / 'jpeg' / 'png' を大文字小文字を区別せずに解釈する。"""
        if isinstance(value, OutputFormat):
            return value
        normalized = str(value).strip().lower()
        if normalized == "jpg":
            normalized = "jpeg"
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(f"出力形式は jpg か png を指定してください: {value}") from None


@dataclass(frozen=True)
class ProcessingConfig:
    """一括処理の設定（不変）"""

    output_format: OutputFormat = OutputFormat.JPEG
    max_width: int = DEFAULT_MAX_WIDTH
    max_height: int = DEFAULT_MAX_HEIGHT
    quality: int = DEFAULT_QUALITY
    output_dir: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_DIR))
    workers: int = DEFAULT_WORKERS
    input_dir: Path = field(default_factory=lambda: Path(DEFAULT_INPUT_DIR))
    recursive: bool = False
    dry_run: bool = False

    def __post_init__(self) -> None:
        if not str(self.output_dir).strip():
            raise ValidationError("出力ディレクトリが空です")
        # frozen のため object.__setattr__ で正規化する
        object.__setattr__(self, "output_format", OutputFormat.parse(self.output_format))
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "input_dir", Path(self.input_dir))
        self.validate()

    def validate(self) -> None:
        """設定値の妥当性を検証"""
        _require_int("最大幅", self.max_width)
        _require_int("最大高さ", self.max_height)
        if self.max_width <= 0 or self.max_height <= 0:
            raise ValidationError(
                f"最大サイズは正の整数で指定してください: {self.max_width}x{self.max_height}"
            )

        _require_int("品質", self.quality)
        low, high = QUALITY_RANGE
        if not low <= self.quality <= high:
            raise ValidationError(f"品質は{low}から{high}の範囲で指定してください: {self.quality}")

        _require_int("ワーカー数", self.workers)
        if self.workers <= 0:
            raise ValidationError(f"ワーカー数は正の整数で指定してください: {self.workers}")

    def to_dict(self) -> Dict[str, Any]:
        """設定を辞書形式に変換"""
        return {
            "input_dir": str(self.input_dir),
            "output_dir": str(self.output_dir),
            "format": self.output_format.value,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "quality": self.quality,
            "workers": self.workers,
            "recursive": self.recursive,
            "dry_run": self.dry_run,
        }


def _require_int(name: str, value: Any) -> None:
    # bool は int のサブクラスなので明示的に除外する
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name}は整数で指定してください: {value!r}")
