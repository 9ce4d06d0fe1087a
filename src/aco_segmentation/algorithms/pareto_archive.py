"""
パレートアーカイブモジュール

シミュレーション全体（再起動をまたいで）の非支配解の集合を保持します。

【挿入規則】
- 既存の解に支配される解、または既存の解と目的関数値が等しい解は受け入れない
- 受け入れた解が支配する既存の解は全て取り除く
- max_size > 0 でサイズを超えた場合は剪定する
  （エッジ値が大きい順、同値なら接続性の指標が小さい順に保持）

どの時点でもアーカイブの解は互いに支配しません。
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import numpy as np

from ..exceptions import EmptyParetoFrontError
from ..modules.evaluator import ObjectiveVector
from ..modules.segmentation import SegmentMap

Scalarization = Callable[[ObjectiveVector], float]


@dataclass
class ParetoSolution:
    """
    パレート解（セグメントと目的関数値の組）

    Attributes:
        objectives (ObjectiveVector): 目的関数値
        segment_map (SegmentMap): セグメント
        pheromones (Dict[str, np.ndarray]): 評価時点のフェロモン層のコピー
        generation (int): 評価時の世代（全再起動を通した通し番号）
        restart (int): 評価時の再起動回数
    """

    objectives: ObjectiveVector
    segment_map: SegmentMap
    pheromones: Dict[str, np.ndarray] = field(default_factory=dict)
    generation: int = 0
    restart: int = 0

    def stat_info(self) -> str:
        """ファイル名などに使う要約文字列"""
        return (
            f"segs{self.segment_map.num_segments}"
            f"-e{self.objectives.edge_value:.2E}"
            f"-c{self.objectives.connectivity_measure:.2E}"
            f"-d{self.objectives.overall_deviation:.2E}"
        )


def weighted_sum(weights: Sequence[float] = (1.0, -1.0, -1.0)) -> Scalarization:
    """
    重み付き和によるスカラー化関数を作成（値が大きいほど良い）

    Args:
        weights: (edge_value, connectivity_measure, overall_deviation) の重み

    Returns:
        ObjectiveVector を受け取りスコアを返す関数
    """
    if len(weights) != 3:
        raise ValueError(f"Expected 3 weights, got {len(weights)}")
    w = tuple(float(v) for v in weights)

    def scalarize(objectives: ObjectiveVector) -> float:
        return sum(a * b for a, b in zip(w, objectives.as_tuple()))

    return scalarize


def edge_first(objectives: ObjectiveVector) -> float:
    """エッジ値のみによるスカラー化（既定の選択基準）"""
    return objectives.edge_value


class ParetoArchive:
    """
    非支配解のアーカイブ

    Attributes:
        max_size (int): 保持する最大数（0なら無制限）
        tolerance (float): 目的関数値を等しいとみなす許容誤差

    Example:
        >>> archive = ParetoArchive()
        >>> len(archive)
        0
    """

    def __init__(self, max_size: int = 0, tolerance: float = 1e-9):
        if max_size < 0:
            raise ValueError(f"max_size must be non-negative, got {max_size}")
        self.max_size = max_size
        self.tolerance = tolerance
        self._solutions: List[ParetoSolution] = []

    @property
    def solutions(self) -> List[ParetoSolution]:
        """アーカイブ内の解（挿入順）"""
        return list(self._solutions)

    def objective_vectors(self) -> List[ObjectiveVector]:
        """アーカイブ内の目的関数値のリスト"""
        return [s.objectives for s in self._solutions]

    def insert(self, solution: ParetoSolution) -> bool:
        """
        解を挿入

        Args:
            solution: 候補の解

        Returns:
            アーカイブに受け入れられた場合True
        """
        candidate = solution.objectives
        for member in self._solutions:
            if member.objectives.dominates(candidate):
                return False
            if member.objectives.is_close(candidate, self.tolerance):
                return False

        # 新しい解が支配する既存の解を削除
        self._solutions = [
            member
            for member in self._solutions
            if not candidate.dominates(member.objectives)
        ]
        self._solutions.append(solution)

        if self.max_size and len(self._solutions) > self.max_size:
            self._solutions = self._prune(self._solutions, self.max_size)
            return any(member is solution for member in self._solutions)
        return True

    def _prune(self, solutions: List[ParetoSolution], max_count: int) -> List[ParetoSolution]:
        """
        解を剪定（エッジ値が大きいものを優先的に保持）

        Args:
            solutions: 解のリスト
            max_count: 保持する最大数

        Returns:
            剪定後の解のリスト
        """
        sorted_solutions = sorted(
            solutions,
            key=lambda s: (-s.objectives.edge_value, s.objectives.connectivity_measure),
        )
        return sorted_solutions[:max_count]

    def is_non_dominated(self) -> bool:
        """アーカイブ内の解が互いに支配しないか"""
        vectors = self.objective_vectors()
        return not any(
            a.dominates(b) for i, a in enumerate(vectors) for j, b in enumerate(vectors) if i != j
        )

    def select(self, scalarization: Optional[Scalarization] = None) -> ParetoSolution:
        """
        スカラー化関数で1つの解を選択

        Args:
            scalarization: 大きいほど良いスコアを返す関数（省略時はエッジ値）

        Returns:
            スコア最大の解（同点なら先に挿入された解）

        Raises:
            EmptyParetoFrontError: アーカイブが空の場合
        """
        if not self._solutions:
            raise EmptyParetoFrontError("Cannot select a solution from an empty archive")
        score = scalarization or edge_first
        return max(self._solutions, key=lambda s: score(s.objectives))

    def __len__(self) -> int:
        return len(self._solutions)

    def __iter__(self) -> Iterator[ParetoSolution]:
        return iter(list(self._solutions))

    def __repr__(self) -> str:
        return f"ParetoArchive(size={len(self)}, max_size={self.max_size})"
