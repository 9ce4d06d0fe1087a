"""
遷移選択モデル

アリが現在位置から次に進む近傍画素を、重み付きランダムで選択します。

【重みの構成】
    w(c) = (τ(c) + τ_floor)^α × 方向係数 × 画像類似係数 × 再訪問減衰
- τ(c): 候補画素 c における全フェロモン層の和（層間は加算）
- 方向係数: max(0, d(p, target) - d(c, target) + direction_offset)
  目標点に近づく候補ほど大きい
- 画像類似係数: 1 / (color_offset + dist(color(p), color(c)))
  色が近い画素へ進みやすい
- 再訪問減衰: 訪問済みの候補は revisit_damping 倍（禁止はしない）

【縮退時の扱い】
全候補の重みが0・負・非有限の場合は degenerate_policy に従う。
- "uniform": 画像内の近傍から一様ランダムに選ぶ（既定）
- "stuck": None を返し、アリは STUCK になる
"""

import math
import random
from typing import Dict, List, Optional

from ..core.ant import Ant
from ..core.image import ImageGrid, Position, position_distance
from ..core.pheromone_field import PheromoneSnapshot
from .color_distance import get_color_distance


class SelectionModel:
    """
    フェロモン・画像・方向・再訪問を組み合わせた遷移選択モデル

    Attributes:
        image (ImageGrid): 対象画像
        alpha (float): フェロモンの重要度
        epsilon (float): ε-Greedyのランダム選択確率
        revisit_damping (float): 訪問済み候補の重み係数
        direction_offset (float): 方向係数のオフセット
        color_offset (float): 画像類似係数のオフセット
        pheromone_floor (float): フェロモン量の下駄（初期状態での縮退を防ぐ）
        degenerate_policy (str): 縮退時の方針（"uniform" または "stuck"）
    """

    def __init__(self, config: Dict, image: ImageGrid):
        """
        Args:
            config: 設定辞書（"selection" セクションを使用）
            image: 対象画像
        """
        params = config["selection"]
        self.image = image
        self.alpha = float(params["alpha"])
        self.epsilon = float(params["epsilon"])
        self.revisit_damping = float(params["revisit_damping"])
        self.direction_offset = float(params["direction_offset"])
        self.color_offset = float(params["color_offset"])
        self.pheromone_floor = float(params["pheromone_floor"])
        self.degenerate_policy = params["degenerate_policy"]

        # 近傍への色距離は画像ごとに一度だけ計算（世代内のスレッドからは読み取りのみ）
        self.distance = get_color_distance(params["color_distance"])
        self._color_table = image.neighbour_distances(self.distance)

    def combined_weight(
        self,
        position: Position,
        candidate: Position,
        ant: Ant,
        snapshot: PheromoneSnapshot,
        direction_index: Optional[int] = None,
    ) -> float:
        """
        候補画素への遷移重みを計算

        Args:
            position: 現在位置
            candidate: 候補位置（positionの8近傍）
            ant: アリ（目標点と訪問済み集合を参照）
            snapshot: フェロモン場のスナップショット
            direction_index: positionからcandidateへの方向インデックス（省略時は色距離を直接計算）

        Returns:
            非負の重み（画像外の候補は0）
        """
        if not self.image.contains(candidate):
            return 0.0

        # 【フェロモン項】層の和に下駄を履かせてα乗
        tau = (snapshot.intensity(candidate) + self.pheromone_floor) ** self.alpha

        # 【方向項】目標点へ近づく候補ほど大きい
        dist = position_distance(position, ant.target)
        direction = dist - position_distance(candidate, ant.target) + self.direction_offset
        direction = max(0.0, direction)

        # 【画像項】色の近い画素ほど大きい
        if direction_index is not None:
            x, y = position
            color_dist = float(self._color_table[y, x, direction_index])
        else:
            color_dist = float(
                self.distance(self.image.pixel(position), self.image.pixel(candidate))
            )
        denominator = self.color_offset + color_dist
        similarity = 1.0 / denominator if denominator > 0 else 1.0

        # 【再訪問項】訪問済みなら減衰（禁止はしない）
        revisit = self.revisit_damping if ant.has_visited(candidate) else 1.0

        return tau * direction * similarity * revisit

    def choose_next(
        self, ant: Ant, snapshot: PheromoneSnapshot, rng: random.Random
    ) -> Optional[Position]:
        """
        次の位置を選択

        Args:
            ant: 歩行中のアリ
            snapshot: フェロモン場のスナップショット
            rng: アリ専用の乱数生成器

        Returns:
            次の位置。縮退時に degenerate_policy が "stuck" なら None
        """
        indexed = self.image.neighbour_indices(ant.position)
        candidates: List[Position] = [pos for _, pos in indexed]
        if not candidates:
            return None

        # 【探索】確率εで一様ランダムに選択
        if self.epsilon > 0 and rng.random() < self.epsilon:
            return rng.choice(candidates)

        # 【活用】重みに比例した確率で選択
        weights = [
            self.combined_weight(ant.position, pos, ant, snapshot, direction_index=k)
            for k, pos in indexed
        ]
        if self._is_degenerate(weights):
            if self.degenerate_policy == "stuck":
                return None
            return rng.choice(candidates)

        return rng.choices(candidates, weights=weights, k=1)[0]

    @staticmethod
    def _is_degenerate(weights: List[float]) -> bool:
        """重みが確率分布として使えないか（全て0、負、非有限、総和が非有限）"""
        if any(w < 0 or not math.isfinite(w) for w in weights):
            return True
        total = sum(weights)
        return not (total > 0 and math.isfinite(total))
