"""
色距離モジュール

画素の色（RGB）同士の距離を計算する関数群です。
設定ファイルの名前から、閉じた候補の中の1つを選択して使用します。

各関数は単一画素（shape=(3,)）にも、ブロードキャスト可能な配列（shape=(..., 3)）にも
適用できます。
"""

from typing import Callable, Dict

import numpy as np

from ..exceptions import InvalidConfigurationError

ColorDistance = Callable[[np.ndarray, np.ndarray], np.ndarray]


def euclidean_squared(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """ユークリッド距離の2乗"""
    diff = np.asarray(b, dtype=float) - np.asarray(a, dtype=float)
    return np.sum(diff * diff, axis=-1)


def euclidean(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """ユークリッド距離"""
    return np.sqrt(euclidean_squared(a, b))


def manhattan(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """マンハッタン距離（各チャネルの差の絶対値の和）"""
    diff = np.asarray(b, dtype=float) - np.asarray(a, dtype=float)
    return np.sum(np.abs(diff), axis=-1)


def cosine(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    コサイン距離（1 - コサイン類似度）

    黒画素（大きさ0）を含む組は距離0とみなします。
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    dot = np.sum(a * b, axis=-1)
    norm = np.sqrt(np.sum(a * a, axis=-1)) * np.sqrt(np.sum(b * b, axis=-1))
    with np.errstate(divide="ignore", invalid="ignore"):
        similarity = np.where(norm > 0, dot / np.where(norm > 0, norm, 1.0), 1.0)
    return np.clip(1.0 - similarity, 0.0, 2.0)


COLOR_DISTANCES: Dict[str, ColorDistance] = {
    "euclidean": euclidean,
    "euclidean_squared": euclidean_squared,
    "manhattan": manhattan,
    "cosine": cosine,
}


def get_color_distance(name: str) -> ColorDistance:
    """
    名前から色距離関数を取得

    Args:
        name: "euclidean", "euclidean_squared", "manhattan", "cosine" のいずれか

    Returns:
        色距離関数

    Raises:
        InvalidConfigurationError: 未知の名前が指定された場合
    """
    try:
        return COLOR_DISTANCES[name]
    except KeyError:
        raise InvalidConfigurationError(f"Unknown color distance: {name}") from None
