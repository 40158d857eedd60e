"""画像一括変換・リサイズツール"""

__version__ = "1.0.0"

__all__ = ["__version__"]
