"""
フェロモン場モジュール

画像の画素格子上に定義された、名前付きのフェロモン層の集合を管理します。

【設計】
- 各層は W×H の非負の float グリッド（numpy配列、インデックスは [y, x]）
- 世代内ではアリはスナップショット（書き込み不可のコピー）のみを読み取る
- 場の更新は世代境界（局所更新）と大域評価境界（大域更新）でのみ行う
- 全ての操作の後でフェロモン値は0以上に保たれる
"""

from typing import Dict, Iterable, List, Mapping, Tuple, Union

import numpy as np


class PheromoneSnapshot:
    """
    世代開始時点のフェロモン場の読み取り専用コピー

    Attributes:
        layers (Dict[str, np.ndarray]): 層名をキーとする書き込み不可のグリッド
        total (np.ndarray): 全層の和（選択モデルが参照する加算フェロモン量）
    """

    def __init__(self, layers: Mapping[str, np.ndarray]):
        self.layers: Dict[str, np.ndarray] = {}
        for name, grid in layers.items():
            copied = np.array(grid, dtype=float, copy=True)
            copied.setflags(write=False)
            self.layers[name] = copied

        total = np.zeros_like(next(iter(self.layers.values())))
        for grid in self.layers.values():
            total = total + grid
        total.setflags(write=False)
        self.total = total

    def intensity(self, position: Tuple[int, int]) -> float:
        """位置 (x, y) における全層のフェロモン量の和"""
        x, y = position
        return float(self.total[y, x])

    def __getitem__(self, name: str) -> np.ndarray:
        return self.layers[name]


class PheromoneField:
    """
    名前付きフェロモン層の集合

    Attributes:
        width (int): 画像の幅
        height (int): 画像の高さ

    Example:
        >>> field = PheromoneField(["edge", "connectivity"], width=4, height=3)
        >>> field.layer("edge").shape
        (3, 4)
        >>> field.deposit("edge", np.ones((3, 4)))
        >>> field.evaporate(0.5)
        >>> float(field.layer("edge")[0, 0])
        0.5
    """

    def __init__(self, names: Iterable[str], width: int, height: int):
        """
        Args:
            names: 層名のリスト（順序は保持されます）
            width: 画像の幅
            height: 画像の高さ

        Raises:
            ValueError: 層が1つもない、または層名が重複している場合
        """
        names = list(names)
        if not names:
            raise ValueError("A pheromone field needs at least one layer")
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate pheromone layer names: {names}")

        self.width = width
        self.height = height
        self._layers: Dict[str, np.ndarray] = {
            name: np.zeros((height, width), dtype=float) for name in names
        }

    @property
    def names(self) -> List[str]:
        """層名のリスト"""
        return list(self._layers.keys())

    @property
    def shape(self) -> Tuple[int, int]:
        """(height, width)"""
        return (self.height, self.width)

    def layer(self, name: str) -> np.ndarray:
        """
        層のグリッドを取得（読み取り用のビュー）

        Raises:
            KeyError: 未知の層名の場合
        """
        view = self._layers[name].view()
        view.setflags(write=False)
        return view

    def snapshot(self) -> PheromoneSnapshot:
        """世代内でアリが参照する読み取り専用スナップショットを作成"""
        return PheromoneSnapshot(self._layers)

    def copy(self) -> "PheromoneField":
        """場の深いコピー"""
        clone = PheromoneField(self.names, self.width, self.height)
        for name, grid in self._layers.items():
            clone._layers[name] = grid.copy()
        return clone

    def reset(self) -> None:
        """全層を0に戻す"""
        for grid in self._layers.values():
            grid.fill(0.0)

    def evaporate(self, rate: Union[float, Mapping[str, float]]) -> None:
        """
        フェロモンを揮発

        式: τ(t+1) = max(0, (1 - ρ) * τ(t))

        Args:
            rate: 全層共通の揮発率、または層名をキーとする揮発率の辞書
                  （辞書にない層は揮発しない）

        Raises:
            ValueError: 揮発率が [0, 1] の範囲外の場合
        """
        for name, grid in self._layers.items():
            rho = rate.get(name, 0.0) if isinstance(rate, Mapping) else rate
            if not 0.0 <= rho <= 1.0:
                raise ValueError(f"Evaporation rate must be in [0, 1], got {rho}")
            grid *= 1.0 - rho
            np.maximum(grid, 0.0, out=grid)

    def deposit(self, name: str, delta: np.ndarray) -> None:
        """
        フェロモンを付加

        Args:
            name: 層名
            delta: 付加量のグリッド（shape=(H, W)、非負）

        Raises:
            ValueError: 形状が一致しない、または負の値を含む場合
        """
        delta = np.asarray(delta, dtype=float)
        self._check_grid(delta)
        if np.any(delta < 0) or not np.all(np.isfinite(delta)):
            raise ValueError("Pheromone deposits must be finite and non-negative")
        self._layers[name] += delta

    def scale(self, name: str, factor: Union[float, np.ndarray]) -> None:
        """
        層を係数倍する（大域更新での減衰に使用）

        Raises:
            ValueError: 係数が負の値を含む場合
        """
        factor = np.asarray(factor, dtype=float)
        if factor.ndim:
            self._check_grid(factor)
        if np.any(factor < 0) or not np.all(np.isfinite(factor)):
            raise ValueError("Pheromone scale factors must be finite and non-negative")
        grid = self._layers[name]
        grid *= factor
        np.maximum(grid, 0.0, out=grid)

    def normalize(self, name: str) -> None:
        """層を最大値で割り、0〜1に正規化（全て0の場合は何もしない）"""
        grid = self._layers[name]
        max_value = grid.max()
        if max_value > 0:
            grid /= max_value

    def total(self) -> np.ndarray:
        """全層の和"""
        total = np.zeros(self.shape, dtype=float)
        for grid in self._layers.values():
            total += grid
        return total

    def to_greyscale(self) -> Dict[str, np.ndarray]:
        """
        各層を0〜255のグレースケール画像（uint8）に変換（可視化用）

        Returns:
            層名をキーとする shape=(H, W) の uint8 配列の辞書
        """
        images = {}
        for name, grid in self._layers.items():
            max_value = grid.max()
            if max_value > 0:
                scaled = grid / max_value * 255.0
            else:
                scaled = np.zeros_like(grid)
            images[name] = np.clip(np.round(scaled), 0, 255).astype(np.uint8)
        return images

    def is_non_negative(self) -> bool:
        """全層が非負かどうか"""
        return all(bool(np.all(grid >= 0)) for grid in self._layers.values())

    def _check_grid(self, grid: np.ndarray) -> None:
        if grid.shape != self.shape:
            raise ValueError(f"Expected grid of shape {self.shape}, got {grid.shape}")

    def __contains__(self, name: str) -> bool:
        return name in self._layers

    def __repr__(self) -> str:
        return (
            f"PheromoneField(layers={self.names}, width={self.width}, "
            f"height={self.height})"
        )
