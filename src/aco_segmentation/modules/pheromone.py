"""
フェロモン更新・揮発ロジック

【局所更新（世代境界）】
1. 全層のフェロモンを揮発させる（0で下限クリップ）
2. FINISHEDのアリごとの付加バッファを、共有のフェロモン場へマージする
   - 付加量 = 層の付加重み × 層のシグナル（trail / gradient / similarity）
   - "normalized" モードでは経路上の異なる画素数で割る
   - STUCKのアリはバッファを持たない（付加なし）

【マージの可換性】
バッファはアリIDの順に並べ直してから加算するため、スレッドの完了順序に
関わらず、同じ経路の集合からは同じフェロモン場が得られる。

【大域更新（大域評価境界）】
1. エッジ層を、現在のセグメントの境界上で局所エッジ値が高い位置で強化
2. 接続性層を、局所接続性値が0（セグメント内部）の位置で減衰
3. 必要に応じて全層を最大値で正規化
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

from ..core.image import ImageGrid, Position
from ..core.pheromone_field import PheromoneField


def layer_signal(kind: str, gradient: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """
    層のシグナル値

    - trail: 1（通過した画素に一様に付加）
    - gradient: 画像の勾配強度（色の境界で大きい）
    - similarity: 1 - 勾配強度（色の一様な領域で大きい）
    """
    if kind == "trail":
        return np.ones(len(ys), dtype=float)
    grad = np.asarray(gradient, dtype=float)[ys, xs]
    if kind == "gradient":
        return grad
    if kind == "similarity":
        return 1.0 - grad
    raise ValueError(f"Unknown layer signal: {kind}")


@dataclass
class DepositBuffer:
    """
    1匹のアリ専用のフェロモン付加バッファ

    Attributes:
        ant_id (int): アリの識別子（マージ時の並び順に使用）
        deposits (Dict[str, Tuple[np.ndarray, np.ndarray, np.ndarray]]):
            層名をキーとする (ys, xs, amounts) の組
    """

    ant_id: int
    deposits: Dict[str, Tuple[np.ndarray, np.ndarray, np.ndarray]] = field(
        default_factory=dict
    )

    @classmethod
    def from_path(
        cls,
        ant_id: int,
        path: Sequence[Position],
        gradient: np.ndarray,
        layers: Mapping[str, Mapping],
        mode: str = "fixed",
    ) -> "DepositBuffer":
        """
        アリの経路から付加バッファを作成

        経路上で同じ画素を複数回通過しても、付加は1回分とします。

        Args:
            ant_id: アリの識別子
            path: 経路（(x, y) の列）
            gradient: 画像の正規化勾配（shape=(H, W)）
            layers: 層の設定（signal, deposit_weight）
            mode: "fixed" または "normalized"（異なる画素数で割る）

        Returns:
            付加バッファ
        """
        buffer = cls(ant_id=ant_id)
        distinct = sorted(set(path), key=lambda p: (p[1], p[0]))
        if not distinct:
            return buffer

        ys = np.array([p[1] for p in distinct], dtype=int)
        xs = np.array([p[0] for p in distinct], dtype=int)
        scale = 1.0 / len(distinct) if mode == "normalized" else 1.0

        for name, layer in layers.items():
            signal = layer_signal(layer["signal"], gradient, ys, xs)
            buffer.deposits[name] = (ys, xs, layer["deposit_weight"] * scale * signal)
        return buffer

    def total_amount(self, name: str) -> float:
        """層への付加量の合計"""
        if name not in self.deposits:
            return 0.0
        return float(np.sum(self.deposits[name][2]))


class PheromoneEvaporator:
    """
    フェロモン揮発を管理するクラス

    式: τ(t+1) = max(0, (1 - ρ_layer) * τ(t))

    Attributes:
        rates (Dict[str, float]): 層名をキーとする揮発率
    """

    def __init__(self, config: Dict):
        """
        Args:
            config: 設定辞書
        """
        default_rate = config["aco"]["evaporation_rate"]
        self.rates: Dict[str, float] = {}
        for name, layer in config["pheromone"]["layers"].items():
            rate = layer.get("evaporation_rate")
            self.rates[name] = default_rate if rate is None else rate

    def evaporate(self, field: PheromoneField) -> None:
        """
        フェロモンを揮発

        Args:
            field: フェロモン場
        """
        field.evaporate(self.rates)


class PheromoneUpdater:
    """
    経路からの付加バッファの作成と、バッファのマージを管理するクラス

    Attributes:
        layers (Dict[str, Dict]): 層の設定（signal, deposit_weight）
        deposit_mode (str): "fixed" または "normalized"
        gradient (np.ndarray): 画像の正規化勾配（shape=(H, W)）
    """

    def __init__(self, config: Dict, image: ImageGrid, distance: Callable):
        """
        Args:
            config: 設定辞書
            image: 対象画像
            distance: 勾配シグナルの計算に使う色距離関数
        """
        self.layers: Dict[str, Dict] = config["pheromone"]["layers"]
        self.deposit_mode = config["pheromone"]["deposit_mode"]
        self.gradient = image.gradient(distance)

    def build_buffer(self, ant_id: int, path: Sequence[Position]) -> DepositBuffer:
        """アリの経路から付加バッファを作成（ワーカースレッド内で呼ばれる）"""
        return DepositBuffer.from_path(
            ant_id, path, self.gradient, self.layers, self.deposit_mode
        )

    def merge(self, field: PheromoneField, buffers: Iterable[DepositBuffer]) -> None:
        """
        付加バッファをフェロモン場へマージ（可換）

        Args:
            field: フェロモン場
            buffers: FINISHEDのアリの付加バッファ（順序は任意）
        """
        ordered: List[DepositBuffer] = sorted(buffers, key=lambda b: b.ant_id)
        for name in field.names:
            delta = np.zeros(field.shape, dtype=float)
            for buffer in ordered:
                if name not in buffer.deposits:
                    continue
                ys, xs, amounts = buffer.deposits[name]
                np.add.at(delta, (ys, xs), amounts)
            field.deposit(name, delta)


def apply_local_rule(
    field: PheromoneField,
    buffers: Iterable[DepositBuffer],
    evaporator: PheromoneEvaporator,
    updater: PheromoneUpdater,
) -> None:
    """
    局所更新規則：揮発してから付加バッファをマージ

    Args:
        field: フェロモン場
        buffers: FINISHEDのアリの付加バッファ
        evaporator: 揮発ロジック
        updater: 付加ロジック
    """
    evaporator.evaporate(field)
    updater.merge(field, buffers)


class GlobalPheromoneUpdater:
    """
    大域評価後のフェロモン調整を管理するクラス

    Attributes:
        edge_layer (str): 強化するエッジ層の名前
        connectivity_layer (str): 減衰させる接続性層の名前
        edge_reinforcement (float): エッジ強化量（局所エッジ値の最大で正規化した値に掛ける）
        connectivity_decay (float): セグメント内部での接続性層の減衰率
        normalize (bool): 調整後に全層を正規化するか
    """

    def __init__(self, config: Dict):
        """
        Args:
            config: 設定辞書
        """
        params = config["global_update"]
        self.edge_layer = params["edge_layer"]
        self.connectivity_layer = params["connectivity_layer"]
        self.edge_reinforcement = float(params["edge_reinforcement"])
        self.connectivity_decay = float(params["connectivity_decay"])
        self.normalize = bool(params.get("normalize", True))

    def apply(self, field: PheromoneField, image: ImageGrid, segment_map, evaluator) -> None:
        """
        大域更新を適用

        Args:
            field: フェロモン場
            image: 対象画像
            segment_map: 現在のセグメント（SegmentMap）
            evaluator: 局所値を計算する ObjectiveEvaluator
        """
        local_edge = evaluator.local_edge_values(image, segment_map)
        local_connectivity = evaluator.local_connectivity_values(image, segment_map)

        # 【エッジ強化】境界のコントラストが高い画素ほど強化
        max_edge = float(np.max(local_edge)) if local_edge.size else 0.0
        if max_edge > 0 and self.edge_reinforcement > 0:
            field.deposit(self.edge_layer, self.edge_reinforcement * local_edge / max_edge)

        # 【接続性の減衰】断片化していない（セグメント内部の）画素で減衰
        if self.connectivity_decay > 0:
            factor = np.where(local_connectivity <= 0, 1.0 - self.connectivity_decay, 1.0)
            field.scale(self.connectivity_layer, factor)

        if self.normalize:
            for name in field.names:
                field.normalize(name)
