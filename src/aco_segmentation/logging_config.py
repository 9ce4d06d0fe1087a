"""
ロギング設定

パッケージ共通のロガー（"aco_segmentation"）を設定します。
ライブラリ側のモジュールは logging.getLogger(__name__) を使うだけで、
ハンドラの設定は実行スクリプトからこの関数を呼び出して行います。
"""

import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    "aco_segmentation" 名前空間のロガーを設定

    Args:
        level: ログレベル（logging.DEBUG, logging.INFO など）
        log_file: ログを保存するファイルのパス（省略時は標準出力のみ）
    """
    logger = logging.getLogger("aco_segmentation")
    logger.setLevel(level)

    # 再設定時のログ重複を防ぐ
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
