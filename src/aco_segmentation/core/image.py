"""
画像モジュール

セグメンテーション対象の画像（W×HのRGB画素グリッド）を保持します。
シミュレーション中は読み取り専用です。

【座標の規約】
- 位置は (x, y) のタプルで表現（x: 列、y: 行）
- numpy配列のインデックスは [y, x]
- 近傍は8近傍で、方向の順序は NEIGHBOURHOOD_DIRECTIONS に固定
"""

import math
from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union

import numpy as np

Position = Tuple[int, int]

# 近傍方向（順序はconnectivity_measureの重み 1/(i+1) に影響するため固定）
NEIGHBOURHOOD_DIRECTIONS: Tuple[Position, ...] = (
    (1, 0),
    (-1, 0),
    (0, -1),
    (0, 1),
    (1, -1),
    (1, 1),
    (-1, 1),
    (-1, -1),
)


def position_distance(a: Position, b: Position) -> float:
    """2点間のユークリッド距離"""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def is_adjacent(a: Position, b: Position) -> bool:
    """2点が8近傍で隣接しているか（同一点は隣接とみなさない）"""
    dx = abs(b[0] - a[0])
    dy = abs(b[1] - a[1])
    return max(dx, dy) == 1


def shifted_slices(
    dx: int, dy: int, width: int, height: int
) -> Tuple[Tuple[slice, slice], Tuple[slice, slice]]:
    """
    方向 (dx, dy) へずらした時の、元画素と近傍画素の対応するスライスを返す

    Returns:
        ((元画素のyスライス, xスライス), (近傍画素のyスライス, xスライス))
    """
    src = (
        slice(max(0, -dy), height - max(0, dy)),
        slice(max(0, -dx), width - max(0, dx)),
    )
    dst = (
        slice(max(0, dy), height - max(0, -dy)),
        slice(max(0, dx), width - max(0, -dx)),
    )
    return src, dst


class ImageGrid:
    """
    読み取り専用のRGB画像

    Attributes:
        pixels (np.ndarray): shape=(H, W, 3) の画素値（0〜255、float、書き込み不可）
        width (int): 画像の幅
        height (int): 画像の高さ

    Example:
        >>> image = ImageGrid(np.zeros((4, 4, 3)))
        >>> image.width, image.height
        (4, 4)
        >>> image.neighbours((0, 0))
        [(1, 0), (0, 1), (1, 1)]
    """

    def __init__(self, pixels: np.ndarray):
        """
        Args:
            pixels: shape=(H, W, 3) の配列（H×Wのグレースケールも可）

        Raises:
            ValueError: 配列の形状が画像として解釈できない場合
        """
        array = np.array(pixels, dtype=float)
        if array.ndim == 2:
            array = np.stack([array] * 3, axis=-1)
        if array.ndim != 3 or array.shape[2] < 3:
            raise ValueError(f"Expected an HxWx3 pixel array, got shape {array.shape}")
        array = array[:, :, :3].copy()
        array.setflags(write=False)

        self.pixels = array
        self.height, self.width = array.shape[:2]

        # 色距離関数ごとのキャッシュ
        self._distance_tables: Dict[Callable, np.ndarray] = {}
        self._gradients: Dict[Callable, np.ndarray] = {}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ImageGrid":
        """
        画像ファイル（PNG/JPEGなど）を読み込む

        Args:
            path: 画像ファイルのパス

        Returns:
            ImageGrid

        Note:
            matplotlibはPNGを0.0〜1.0のfloatで返すため、0〜255に変換します。
            アルファチャネルは破棄します。
        """
        import matplotlib.image as mpimg

        data = mpimg.imread(str(path))
        if np.issubdtype(data.dtype, np.floating):
            data = data * 255.0
        if data.ndim == 3:
            data = data[:, :, :3]
        return cls(data)

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width)"""
        return (self.height, self.width)

    def contains(self, position: Position) -> bool:
        """位置が画像内にあるか"""
        x, y = position
        return 0 <= x < self.width and 0 <= y < self.height

    def pixel(self, position: Position) -> np.ndarray:
        """位置 (x, y) の画素値"""
        x, y = position
        return self.pixels[y, x]

    def neighbours(self, position: Position) -> List[Position]:
        """画像内にある8近傍の位置のリスト（方向の順序は固定）"""
        return [pos for _, pos in self.neighbour_indices(position)]

    def neighbour_indices(self, position: Position) -> List[Tuple[int, Position]]:
        """
        画像内にある8近傍を (方向インデックス, 位置) のリストで返す

        方向インデックスは NEIGHBOURHOOD_DIRECTIONS の添字で、
        neighbour_distances() のテーブル参照に使用します。
        """
        x, y = position
        result = []
        for k, (dx, dy) in enumerate(NEIGHBOURHOOD_DIRECTIONS):
            px, py = x + dx, y + dy
            if 0 <= px < self.width and 0 <= py < self.height:
                result.append((k, (px, py)))
        return result

    def positions(self) -> List[Position]:
        """全画素の位置（行優先順）"""
        return [(x, y) for y in range(self.height) for x in range(self.width)]

    def neighbour_distances(self, distance: Callable) -> np.ndarray:
        """
        各画素から各近傍画素への色距離のテーブル

        Args:
            distance: 色距離関数

        Returns:
            shape=(H, W, 8) の配列。画像外の近傍はNaN
        """
        table = self._distance_tables.get(distance)
        if table is not None:
            return table

        table = np.full((self.height, self.width, len(NEIGHBOURHOOD_DIRECTIONS)), np.nan)
        for k, (dx, dy) in enumerate(NEIGHBOURHOOD_DIRECTIONS):
            src, dst = shifted_slices(dx, dy, self.width, self.height)
            table[src[0], src[1], k] = distance(
                self.pixels[src[0], src[1]], self.pixels[dst[0], dst[1]]
            )
        table.setflags(write=False)
        self._distance_tables[distance] = table
        return table

    def gradient(self, distance: Callable) -> np.ndarray:
        """
        画素ごとの勾配強度（近傍との色距離の最大値）を0〜1に正規化したもの

        一様な画像では全て0になります。
        """
        grad = self._gradients.get(distance)
        if grad is not None:
            return grad

        table = self.neighbour_distances(distance)
        # 近傍が存在しない画素（1×1画像）は0
        filled = np.where(np.isnan(table), -np.inf, table)
        grad = np.max(filled, axis=2)
        grad = np.where(np.isfinite(grad), grad, 0.0)
        max_value = grad.max() if grad.size else 0.0
        if max_value > 0:
            grad = grad / max_value
        else:
            grad = np.zeros_like(grad)
        grad.setflags(write=False)
        self._gradients[distance] = grad
        return grad

    def __repr__(self) -> str:
        return f"ImageGrid(width={self.width}, height={self.height})"
