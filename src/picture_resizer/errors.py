"""
画像一括リサイズツールの例外定義

致命的なエラー（設定・探索・出力先作成）は処理開始前に送出され、
ファイル単位のエラー（デコード・エンコード・出力先衝突）はタスク境界で
捕捉されて処理結果として集計されます。
"""

from __future__ import annotations

import errno as errno_codes
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

PathLike = Union[str, Path]


class PictureResizerError(Exception):
    """本パッケージが送出する例外の基底クラス"""


class ValidationError(PictureResizerError, ValueError):
    """設定値が不正（処理開始前に中断）"""


class DiscoveryError(PictureResizerError):
    """入力ディレクトリの探索に失敗（処理開始前に中断）"""


class NotFoundError(DiscoveryError):
    """入力ディレクトリが存在しない"""


class OutputDirectoryError(PictureResizerError):
    """出力ディレクトリを作成できない（処理開始前に中断）"""


class TaskError(PictureResizerError):
    """ファイル単位のエラー。兄弟タスクには影響しない"""

    def __init__(self, path: PathLike, message: str, cause: Optional[BaseException] = None):
        self.path = Path(path)
        self.cause = cause
        super().__init__(message)


class DecodeError(TaskError):
    """画像の読み込みに失敗（破損・未対応形式など）"""

    def __init__(self, path: PathLike, cause: Optional[BaseException] = None):
        detail = describe_error(cause) if cause is not None else "不明なエラー"
        super().__init__(path, f"画像を読み込めません: {Path(path).name} ({detail})", cause)


class EncodeError(TaskError):
    """画像の書き込みに失敗（容量不足・権限など）"""

    def __init__(self, path: PathLike, cause: Optional[BaseException] = None):
        detail = describe_error(cause) if cause is not None else "不明なエラー"
        super().__init__(path, f"画像を保存できません: {Path(path).name} ({detail})", cause)


class OutputConflictError(TaskError):
    """別の入力ファイルと出力先が重複している"""

    def __init__(self, path: PathLike, output_path: PathLike, claimed_by: PathLike):
        self.output_path = Path(output_path)
        self.claimed_by = Path(claimed_by)
        super().__init__(
            path,
            f"出力先が重複しています: {self.output_path.name} ({self.claimed_by} が使用済み)",
        )


def describe_error(error: BaseException) -> str:
    """
    例外から日本語のエラーメッセージを生成します

    Args:
        error: 例外オブジェクト

    Returns:
        str: 日本語エラーメッセージ
    """
    if isinstance(error, PictureResizerError):
        return str(error)

    error_type = type(error).__name__
    error_msg = str(error)

    # 画像関連エラー
    if isinstance(error, UnidentifiedImageError):
        return f"画像ファイルとして認識できません: {error_msg}"
    if isinstance(error, Image.DecompressionBombError):
        return f"画像が大きすぎます（圧縮爆弾の可能性）: {error_msg}"

    # ファイル関連エラー
    if isinstance(error, FileNotFoundError):
        return f"ファイルが見つかりません: {error_msg}"
    if isinstance(error, PermissionError):
        return f"アクセス権限がありません: {error_msg}"
    if isinstance(error, IsADirectoryError):
        return f"ディレクトリが指定されました（ファイルを指定してください）: {error_msg}"
    if isinstance(error, NotADirectoryError):
        return f"ディレクトリではありません: {error_msg}"

    if isinstance(error, OSError):
        if error.errno == errno_codes.ENOSPC:
            return "ディスク容量が不足しています"
        if error.errno == errno_codes.ENAMETOOLONG:
            return "ファイル名が長すぎます"
        return f"システムエラー: {error_msg}"

    if isinstance(error, MemoryError):
        return "メモリ不足エラー: 画像が大きすぎるか、使用可能なメモリが不足しています"
    if isinstance(error, ValueError):
        return f"無効な値: {error_msg}"

    return f"{error_type}: {error_msg}"
