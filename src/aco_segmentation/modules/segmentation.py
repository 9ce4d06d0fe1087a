"""
セグメント抽出モジュール

フェロモン場の境界層から、画素ごとのセグメントラベル（SegmentMap）を作ります。

【抽出の手順】
1. 境界層を最大値で正規化し、閾値を超える画素を境界とする
2. 境界以外の画素を4近傍の格子グラフ（networkx.grid_2d_graph）上で連結成分に分け、
   ラベルを付ける（ラベルは各成分の行優先で最初の画素の順）
3. 境界画素は、ラベル付きの4近傍のうち色距離が最も近いもののラベルを引き継ぐ
   （同距離ならラベル番号の小さい方）。全画素が埋まるまで同期的に繰り返す
4. ラベル付きの画素が1つもなければ、画像全体を1つのセグメントとする

出力は必ず全画素を1回ずつ覆う分割になります。
"""

from typing import Callable, Dict, List

import networkx as nx
import numpy as np

from ..core.image import NEIGHBOURHOOD_DIRECTIONS, ImageGrid, Position, shifted_slices
from ..core.pheromone_field import PheromoneField

# 4近傍 (dx, dy)。neighbour_distances の方向インデックス 0〜3 と一致
_FOUR_NEIGHBOURS = NEIGHBOURHOOD_DIRECTIONS[:4]


class SegmentMap:
    """
    画素からセグメントラベルへの対応（画像全体の分割）

    Attributes:
        labels (np.ndarray): shape=(H, W) のラベル（0 〜 num_segments-1、書き込み不可）

    Example:
        >>> seg = SegmentMap(np.array([[0, 0, 1], [0, 1, 1]]))
        >>> seg.num_segments
        2
        >>> seg.sizes().tolist()
        [3, 3]
    """

    def __init__(self, labels: np.ndarray):
        """
        Args:
            labels: shape=(H, W) の整数ラベル

        Raises:
            ValueError: 2次元でない、負のラベルや欠番を含む場合
        """
        labels = np.array(labels, dtype=int)
        if labels.ndim != 2 or labels.size == 0:
            raise ValueError(f"Labels must be a non-empty 2D grid, got shape {labels.shape}")
        if labels.min() < 0:
            raise ValueError("Every pixel must be assigned to a segment")
        present = np.unique(labels)
        if not np.array_equal(present, np.arange(len(present))):
            raise ValueError(f"Segment labels must be contiguous from 0, got {present.tolist()}")
        labels.setflags(write=False)
        self.labels = labels

    @property
    def num_segments(self) -> int:
        """セグメント数"""
        return int(self.labels.max()) + 1

    @property
    def shape(self):
        """(height, width)"""
        return self.labels.shape

    def label_at(self, position: Position) -> int:
        """位置 (x, y) のラベル"""
        x, y = position
        return int(self.labels[y, x])

    def segments(self) -> Dict[int, List[Position]]:
        """ラベルごとの画素位置のリスト（行優先順）"""
        result: Dict[int, List[Position]] = {k: [] for k in range(self.num_segments)}
        height, width = self.labels.shape
        for y in range(height):
            for x in range(width):
                result[int(self.labels[y, x])].append((x, y))
        return result

    def sizes(self) -> np.ndarray:
        """ラベルごとの画素数"""
        return np.bincount(self.labels.ravel(), minlength=self.num_segments)

    def boundary_mask(self) -> np.ndarray:
        """4近傍に異なるラベルを持つ画素のマスク"""
        mask = np.zeros(self.labels.shape, dtype=bool)
        horizontal = self.labels[:, 1:] != self.labels[:, :-1]
        vertical = self.labels[1:, :] != self.labels[:-1, :]
        mask[:, 1:] |= horizontal
        mask[:, :-1] |= horizontal
        mask[1:, :] |= vertical
        mask[:-1, :] |= vertical
        return mask

    def covers(self, width: int, height: int) -> bool:
        """W×Hの画像の全画素を覆っているか"""
        return self.labels.shape == (height, width)

    def __repr__(self) -> str:
        height, width = self.labels.shape
        return f"SegmentMap(width={width}, height={height}, segments={self.num_segments})"


class SegmentExtractor:
    """
    フェロモン場の境界層からSegmentMapを抽出するクラス

    Attributes:
        boundary_layer (str): 境界として扱う層の名前
        threshold (float): 正規化後の境界判定の閾値（これを超えると境界）
        distance (Callable): 境界画素の割り当てに使う色距離関数
    """

    def __init__(self, boundary_layer: str, threshold: float, distance: Callable):
        if not 0.0 <= threshold < 1.0:
            raise ValueError(f"Boundary threshold must be in [0, 1), got {threshold}")
        self.boundary_layer = boundary_layer
        self.threshold = threshold
        self.distance = distance

    def boundary_mask(self, field: PheromoneField) -> np.ndarray:
        """
        境界マスクを計算

        境界層が全て0の場合、境界は存在しません。
        """
        grid = np.asarray(field.layer(self.boundary_layer), dtype=float)
        max_value = grid.max()
        if max_value <= 0:
            return np.zeros(grid.shape, dtype=bool)
        return grid / max_value > self.threshold

    def extract(self, field: PheromoneField, image: ImageGrid) -> SegmentMap:
        """
        SegmentMapを抽出

        Args:
            field: フェロモン場
            image: 対象画像

        Returns:
            画像全体を覆うSegmentMap
        """
        boundary = self.boundary_mask(field)
        labels = self._label_interior(boundary)
        if np.all(labels < 0):
            return SegmentMap(np.zeros(image.shape, dtype=int))
        self._assign_boundary(labels, image)
        return SegmentMap(labels)

    def _label_interior(self, boundary: np.ndarray) -> np.ndarray:
        """境界以外の画素を4連結成分でラベル付け（未割り当ては -1）"""
        height, width = boundary.shape
        graph = nx.grid_2d_graph(height, width)
        graph.remove_nodes_from(
            (int(y), int(x)) for y, x in zip(*np.nonzero(boundary))
        )

        # ノードは (y, x) なので、min() が行優先で最初の画素になる
        components = sorted(
            (min(component), component) for component in nx.connected_components(graph)
        )

        labels = np.full((height, width), -1, dtype=int)
        for label, (_, component) in enumerate(components):
            for y, x in component:
                labels[y, x] = label
        return labels

    def _assign_boundary(self, labels: np.ndarray, image: ImageGrid) -> None:
        """
        境界画素を、色の最も近いラベル付き4近傍のラベルで同期的に埋める

        ラベル付きの画素から1画素ずつ外側へ広げます（多始点の幅優先探索）。
        各段では、前の段までにラベルが付いた近傍だけを候補にします。
        """
        height, width = labels.shape
        table = image.neighbour_distances(self.distance)

        # 【初期の前線】ラベル付きの4近傍を持つ未割り当て画素
        labelled = labels >= 0
        near = np.zeros_like(labelled)
        for dx, dy in _FOUR_NEIGHBOURS:
            src, dst = shifted_slices(dx, dy, width, height)
            near[src[0], src[1]] |= labelled[dst[0], dst[1]]
        frontier = [(int(y), int(x)) for y, x in zip(*np.nonzero(near & ~labelled))]

        while frontier:
            updates = []
            for y, x in frontier:
                best = None
                for k, (dx, dy) in enumerate(_FOUR_NEIGHBOURS):
                    px, py = x + dx, y + dy
                    if not (0 <= px < width and 0 <= py < height):
                        continue
                    label = labels[py, px]
                    if label < 0:
                        continue
                    key = (float(table[y, x, k]), int(label))
                    if best is None or key < best:
                        best = key
                updates.append((y, x, best[1]))

            for y, x, label in updates:
                labels[y, x] = label

            # 【次の前線】この段で埋まった画素の未割り当て4近傍
            following = set()
            for y, x, _ in updates:
                for dx, dy in _FOUR_NEIGHBOURS:
                    px, py = x + dx, y + dy
                    if 0 <= px < width and 0 <= py < height and labels[py, px] < 0:
                        following.add((py, px))
            frontier = sorted(following)
