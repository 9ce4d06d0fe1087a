"""
評価関数モジュール

SegmentMapに対する3つの目的関数を計算します。

【目的関数】（近傍は画像内の8近傍、方向の順序は固定）
- edge_value（最大化）:
    Σ_p Σ_{q ∈ N(p), label(q) ≠ label(p)} dist(color(p), color(q))
    セグメント境界をまたぐ色の差の総和。境界が色の境目に沿うほど大きい
- connectivity_measure（最小化）:
    Σ_p Σ_{i: q = N_i(p), label(q) ≠ label(p)} 1 / (i + 1)
    異なるセグメントの近傍の数（方向で重み付け）。断片化するほど大きい
- overall_deviation（最小化、記録のみ）:
    セグメントごとの Σ_{p ∈ S} dist(color(p), mean_color(S)) の平均
"""

import math
from dataclasses import dataclass
from typing import Callable, Tuple

import numpy as np

from ..core.image import NEIGHBOURHOOD_DIRECTIONS, ImageGrid, shifted_slices
from .segmentation import SegmentMap


@dataclass(frozen=True)
class ObjectiveVector:
    """
    目的関数値の組

    Attributes:
        edge_value (float): エッジ値（最大化）
        connectivity_measure (float): 接続性の指標（最小化）
        overall_deviation (float): セグメント内の色のばらつき（最小化）
    """

    edge_value: float
    connectivity_measure: float
    overall_deviation: float

    def dominates(self, other: "ObjectiveVector") -> bool:
        """
        self が other を支配するか

        全ての目的で同等以上、かつ少なくとも1つで真に優れている場合に支配します。
        """
        at_least_as_good = (
            self.edge_value >= other.edge_value
            and self.connectivity_measure <= other.connectivity_measure
            and self.overall_deviation <= other.overall_deviation
        )
        strictly_better = (
            self.edge_value > other.edge_value
            or self.connectivity_measure < other.connectivity_measure
            or self.overall_deviation < other.overall_deviation
        )
        return at_least_as_good and strictly_better

    def is_close(self, other: "ObjectiveVector", tol: float = 1e-9) -> bool:
        """全ての目的関数値が許容誤差内で等しいか"""
        return all(
            math.isclose(a, b, rel_tol=tol, abs_tol=tol)
            for a, b in zip(self.as_tuple(), other.as_tuple())
        )

    def as_tuple(self) -> Tuple[float, float, float]:
        """(edge_value, connectivity_measure, overall_deviation)"""
        return (self.edge_value, self.connectivity_measure, self.overall_deviation)


class ObjectiveEvaluator:
    """
    SegmentMapの評価を行うクラス

    Attributes:
        distance (Callable): 色距離関数
    """

    def __init__(self, distance: Callable):
        """
        Args:
            distance: 色距離関数（modules.color_distance から選択）
        """
        self.distance = distance

    def local_edge_values(self, image: ImageGrid, segment_map: SegmentMap) -> np.ndarray:
        """
        画素ごとの局所エッジ値

        Returns:
            shape=(H, W) の配列（セグメント内部の画素は0）
        """
        table = image.neighbour_distances(self.distance)
        labels = segment_map.labels
        local = np.zeros(image.shape, dtype=float)
        for k, (dx, dy) in enumerate(NEIGHBOURHOOD_DIRECTIONS):
            src, dst = shifted_slices(dx, dy, image.width, image.height)
            differs = labels[src] != labels[dst]
            local[src] += np.where(differs, table[src[0], src[1], k], 0.0)
        return local

    def local_connectivity_values(
        self, image: ImageGrid, segment_map: SegmentMap
    ) -> np.ndarray:
        """
        画素ごとの局所接続性値

        Returns:
            shape=(H, W) の配列（セグメント内部の画素は0）
        """
        labels = segment_map.labels
        local = np.zeros(image.shape, dtype=float)
        for k, (dx, dy) in enumerate(NEIGHBOURHOOD_DIRECTIONS):
            src, dst = shifted_slices(dx, dy, image.width, image.height)
            local[src] += (labels[src] != labels[dst]) / (k + 1.0)
        return local

    def edge_value(self, image: ImageGrid, segment_map: SegmentMap) -> float:
        """エッジ値（最大化）"""
        return float(np.sum(self.local_edge_values(image, segment_map)))

    def connectivity_measure(self, image: ImageGrid, segment_map: SegmentMap) -> float:
        """接続性の指標（最小化）"""
        return float(np.sum(self.local_connectivity_values(image, segment_map)))

    def overall_deviation(self, image: ImageGrid, segment_map: SegmentMap) -> float:
        """
        セグメント内の色のばらつき（最小化）

        各セグメントの平均色からの色距離の総和を、セグメント数で平均します。
        """
        labels = segment_map.labels.ravel()
        pixels = image.pixels.reshape(-1, 3)
        count = segment_map.num_segments

        sizes = np.bincount(labels, minlength=count).astype(float)
        means = np.stack(
            [np.bincount(labels, weights=pixels[:, c], minlength=count) for c in range(3)],
            axis=-1,
        ) / sizes[:, np.newaxis]

        deviations = np.asarray(self.distance(pixels, means[labels]), dtype=float)
        per_segment = np.bincount(labels, weights=deviations, minlength=count)
        return float(np.mean(per_segment))

    def evaluate(self, image: ImageGrid, segment_map: SegmentMap) -> ObjectiveVector:
        """
        SegmentMapを評価

        Args:
            image: 対象画像
            segment_map: 評価するセグメント

        Returns:
            ObjectiveVector
        """
        if not segment_map.covers(image.width, image.height):
            raise ValueError(
                f"{segment_map} does not match image {image.width}x{image.height}"
            )
        return ObjectiveVector(
            edge_value=self.edge_value(image, segment_map),
            connectivity_measure=self.connectivity_measure(image, segment_map),
            overall_deviation=self.overall_deviation(image, segment_map),
        )
