"""
評価指標モジュール

パレートアーカイブの目的関数値から、Hypervolume・分布の均一さ等を計算します。

目的関数値は (edge_value, connectivity_measure, overall_deviation) のタプルで扱います。
edge_value は最大化、残りの2つは最小化です。
"""

from typing import List, Sequence, Tuple

import numpy as np

Objectives = Tuple[float, float, float]

# 各目的の方向（+1: 最大化、-1: 最小化）
OBJECTIVE_SENSES = (1.0, -1.0, -1.0)


class MetricsCalculator:
    """
    評価指標を計算するクラス

    Attributes:
        reference_point (List[float]): Hypervolume計算用の基準点
            [edge_value, connectivity_measure, overall_deviation]
    """

    def __init__(self, reference_point: Sequence[float]):
        """
        Args:
            reference_point: Hypervolume計算用の基準点（全ての解より悪い点）
        """
        if len(reference_point) != len(OBJECTIVE_SENSES):
            raise ValueError(
                f"Reference point needs {len(OBJECTIVE_SENSES)} values, got {len(reference_point)}"
            )
        self.reference_point = [float(v) for v in reference_point]

    def extract_pareto_frontier(self, solutions: Sequence[Objectives]) -> List[Objectives]:
        """
        解の集合から支配されない解を抽出（重複は1つにまとめる）

        Args:
            solutions: 解のリスト [(edge, connectivity, deviation), ...]

        Returns:
            パレートフロンティア（入力順）
        """
        unique: List[Objectives] = []
        for solution in solutions:
            solution = tuple(float(v) for v in solution)
            if solution not in unique:
                unique.append(solution)

        return [
            candidate
            for candidate in unique
            if not any(self._dominates(other, candidate) for other in unique)
        ]

    def _dominates(self, sol1: Objectives, sol2: Objectives) -> bool:
        """
        sol1 が sol2 を支配するか判定

        Args:
            sol1: 解1
            sol2: 解2

        Returns:
            sol1 が sol2 を支配する場合True
        """
        better_or_equal = all(
            sense * a >= sense * b for sense, a, b in zip(OBJECTIVE_SENSES, sol1, sol2)
        )
        strictly_better = any(
            sense * a > sense * b for sense, a, b in zip(OBJECTIVE_SENSES, sol1, sol2)
        )
        return better_or_equal and strictly_better

    def _to_gains(self, solutions: Sequence[Objectives]) -> np.ndarray:
        """基準点からの改善量（全て最大化方向）に変換し、基準点より悪い解を除く"""
        reference = np.array(self.reference_point)
        senses = np.array(OBJECTIVE_SENSES)
        gains = (np.array(solutions, dtype=float) - reference) * senses
        return gains[np.all(gains > 0, axis=1)]

    def calculate_hypervolume(self, solutions: Sequence[Objectives]) -> float:
        """
        Hypervolumeを計算（厳密）

        パレートフロンティアの各解と基準点が張る直方体の和集合の体積です。
        座標を圧縮した格子の各セルが、いずれかの解に覆われるかを調べて合計します。

        Args:
            solutions: 解のリスト（内部でパレートフロンティアを抽出します）

        Returns:
            Hypervolume
        """
        if not solutions:
            return 0.0

        gains = self._to_gains(self.extract_pareto_frontier(solutions))
        if len(gains) == 0:
            return 0.0

        # 各軸の座標（0を含む）でセルに分割
        axes = [np.unique(np.concatenate(([0.0], gains[:, k]))) for k in range(gains.shape[1])]
        widths = [np.diff(axis) for axis in axes]
        uppers = np.meshgrid(*[axis[1:] for axis in axes], indexing="ij")
        corners = np.stack(uppers, axis=-1)

        # セルの上端の角がいずれかの解に支配されていれば、そのセルは覆われている
        covered = np.zeros(corners.shape[:-1], dtype=bool)
        for gain in gains:
            covered |= np.all(corners <= gain, axis=-1)

        volumes = widths[0]
        for width in widths[1:]:
            volumes = np.multiply.outer(volumes, width)
        return float(np.sum(volumes[covered]))

    def calculate_spread(self, solutions: Sequence[Objectives]) -> float:
        """
        解の分布の均一さ（Spacing）を計算

        各解から最も近い他の解までのマンハッタン距離の標準偏差です。
        0に近いほど均一に分布しています。

        Args:
            solutions: 解のリスト

        Returns:
            Spacing（解が2つ未満なら0）
        """
        points = np.array(self.extract_pareto_frontier(solutions), dtype=float)
        if len(points) < 2:
            return 0.0

        distances = np.sum(np.abs(points[:, np.newaxis, :] - points[np.newaxis, :, :]), axis=-1)
        np.fill_diagonal(distances, np.inf)
        nearest = distances.min(axis=1)
        return float(np.std(nearest))
