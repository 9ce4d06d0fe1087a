"""
コアモジュールのテスト
"""

import numpy as np
import pytest

from aco_segmentation.core.ant import Ant, AntPhase
from aco_segmentation.core.image import (
    NEIGHBOURHOOD_DIRECTIONS,
    ImageGrid,
    is_adjacent,
    position_distance,
    shifted_slices,
)
from aco_segmentation.core.pheromone_field import PheromoneField
from aco_segmentation.modules.color_distance import euclidean, manhattan


def two_tone_image(width=8, height=8, column=4):
    """column列目から右が別の色の画像"""
    pixels = np.zeros((height, width, 3))
    pixels[:, :column] = (200, 30, 30)
    pixels[:, column:] = (30, 30, 200)
    return ImageGrid(pixels)


class TestAnt:
    """Antクラスのテスト"""

    def test_initialization(self):
        """初期化のテスト"""
        ant = Ant(ant_id=3, origin=(1, 2), target=(4, 4), max_steps=10)
        assert ant.ant_id == 3
        assert ant.position == (1, 2)
        assert ant.phase is AntPhase.SPAWNED
        assert ant.path == [(1, 2)]
        assert ant.visited == {(1, 2)}
        assert ant.steps_in_trip == 0

    def test_invalid_max_steps(self):
        """ステップ上限が1未満なら例外"""
        with pytest.raises(ValueError):
            Ant(ant_id=0, origin=(0, 0), target=(1, 1), max_steps=0)

    def test_round_trip(self):
        """往路 → 折り返し → 復路 → 終了"""
        ant = Ant(ant_id=0, origin=(0, 0), target=(2, 0), max_steps=5)
        ant.depart()
        ant.move_to((1, 0))
        ant.move_to((2, 0))
        assert ant.has_reached_target()

        ant.turn_back()
        assert ant.phase is AntPhase.RETURNING
        assert ant.target == (0, 0)
        assert ant.steps_in_trip == 0
        # 往路の訪問済み集合は復路に引き継がれる
        assert ant.has_visited((1, 0))

        ant.move_to((1, 1))
        ant.move_to((0, 0))
        ant.finish()
        assert ant.phase is AntPhase.FINISHED
        assert ant.path == [(0, 0), (1, 0), (2, 0), (1, 1), (0, 0)]

    def test_move_rejects_non_adjacent(self):
        """隣接しない移動や長さ0の移動は拒否"""
        ant = Ant(ant_id=0, origin=(0, 0), target=(3, 3), max_steps=5)
        ant.depart()
        with pytest.raises(ValueError):
            ant.move_to((2, 0))
        with pytest.raises(ValueError):
            ant.move_to((0, 0))
        assert ant.path == [(0, 0)]

    def test_move_requires_active_phase(self):
        """歩行中でなければ移動できない"""
        ant = Ant(ant_id=0, origin=(0, 0), target=(1, 1), max_steps=5)
        with pytest.raises(RuntimeError):
            ant.move_to((1, 1))

    def test_trip_exhausted_and_stuck(self):
        """ステップ上限に達したら STUCK に遷移できる"""
        ant = Ant(ant_id=0, origin=(0, 0), target=(5, 5), max_steps=2)
        ant.depart()
        ant.move_to((1, 0))
        assert not ant.is_trip_exhausted()
        ant.move_to((0, 0))
        assert ant.is_trip_exhausted()
        ant.get_stuck()
        assert ant.phase is AntPhase.STUCK
        assert not ant.is_active()
        with pytest.raises(RuntimeError):
            ant.get_stuck()

    def test_invalid_transitions(self):
        """状態遷移の順序が誤っていれば例外"""
        ant = Ant(ant_id=0, origin=(0, 0), target=(1, 0), max_steps=5)
        with pytest.raises(RuntimeError):
            ant.turn_back()
        ant.depart()
        with pytest.raises(RuntimeError):
            ant.finish()


class TestImageGrid:
    """ImageGridクラスのテスト"""

    def test_shape_and_read_only(self):
        """形状と書き込み不可のテスト"""
        image = ImageGrid(np.zeros((3, 5, 3)))
        assert (image.width, image.height) == (5, 3)
        assert image.shape == (3, 5)
        with pytest.raises(ValueError):
            image.pixels[0, 0, 0] = 1.0

    def test_greyscale_and_alpha(self):
        """グレースケールは3チャネルに、アルファは破棄"""
        grey = ImageGrid(np.full((2, 2), 7.0))
        assert grey.pixels.shape == (2, 2, 3)
        rgba = ImageGrid(np.ones((2, 2, 4)))
        assert rgba.pixels.shape == (2, 2, 3)

    def test_invalid_shape(self):
        """画像として解釈できない配列は例外"""
        with pytest.raises(ValueError):
            ImageGrid(np.zeros((2, 2, 2)))

    def test_neighbours_order_and_bounds(self):
        """近傍は固定の順序で、画像内のもののみ"""
        image = ImageGrid(np.zeros((4, 4, 3)))
        assert image.neighbours((0, 0)) == [(1, 0), (0, 1), (1, 1)]
        inner = image.neighbours((1, 1))
        assert inner == [(1 + dx, 1 + dy) for dx, dy in NEIGHBOURHOOD_DIRECTIONS]

    def test_neighbour_distances(self):
        """近傍への色距離テーブル（画像外はNaN）"""
        image = two_tone_image(width=4, height=2, column=2)
        table = image.neighbour_distances(manhattan)
        assert table.shape == (2, 4, 8)
        # (1, 0) → (2, 0) は境界をまたぐ
        assert table[0, 1, 0] == pytest.approx(340.0)
        # (0, 0) → (-1, 0) は画像外
        assert np.isnan(table[0, 0, 1])
        # 同じ関数ならキャッシュを返す
        assert image.neighbour_distances(manhattan) is table

    def test_gradient(self):
        """勾配は境界の両側の列で1、それ以外で0"""
        image = two_tone_image()
        grad = image.gradient(euclidean)
        assert grad.max() == pytest.approx(1.0)
        assert np.all(grad[:, 3] == pytest.approx(1.0))
        assert np.all(grad[:, 4] == pytest.approx(1.0))
        assert np.all(grad[:, :3] == 0.0)
        assert np.all(grad[:, 5:] == 0.0)

    def test_gradient_uniform(self):
        """一様な画像の勾配は全て0"""
        image = ImageGrid(np.full((4, 4, 3), 90.0))
        assert np.all(image.gradient(euclidean) == 0.0)

    def test_positions_row_major(self):
        """全画素の位置（行優先）"""
        image = ImageGrid(np.zeros((2, 2, 3)))
        assert image.positions() == [(0, 0), (1, 0), (0, 1), (1, 1)]


class TestGeometry:
    """座標ユーティリティのテスト"""

    def test_is_adjacent(self):
        assert is_adjacent((0, 0), (1, 1))
        assert not is_adjacent((0, 0), (0, 0))
        assert not is_adjacent((0, 0), (2, 0))

    def test_position_distance(self):
        assert position_distance((0, 0), (3, 4)) == pytest.approx(5.0)

    def test_shifted_slices(self):
        """ずらしたスライスが近傍画素に対応する"""
        grid = np.arange(12).reshape(3, 4)
        src, dst = shifted_slices(1, 0, width=4, height=3)
        assert np.array_equal(grid[dst], grid[src] + 1)


class TestPheromoneField:
    """PheromoneFieldクラスのテスト"""

    def test_initialization(self):
        """初期化のテスト"""
        field = PheromoneField(["edge", "trail"], width=4, height=3)
        assert field.names == ["edge", "trail"]
        assert field.shape == (3, 4)
        assert np.all(field.total() == 0.0)

    def test_invalid_layers(self):
        """層がない、または重複していれば例外"""
        with pytest.raises(ValueError):
            PheromoneField([], width=2, height=2)
        with pytest.raises(ValueError):
            PheromoneField(["a", "a"], width=2, height=2)

    def test_deposit_and_evaporate(self):
        """付加と揮発"""
        field = PheromoneField(["edge"], width=2, height=2)
        field.deposit("edge", np.full((2, 2), 2.0))
        field.evaporate(0.25)
        assert np.allclose(field.layer("edge"), 1.5)

    def test_evaporate_per_layer(self):
        """層ごとの揮発率（指定のない層は揮発しない）"""
        field = PheromoneField(["a", "b"], width=1, height=2)
        field.deposit("a", np.ones((2, 1)))
        field.deposit("b", np.ones((2, 1)))
        field.evaporate({"a": 1.0})
        assert np.all(field.layer("a") == 0.0)
        assert np.all(field.layer("b") == 1.0)

    def test_invalid_operations(self):
        """範囲外の揮発率・負の付加・形状の不一致は例外"""
        field = PheromoneField(["edge"], width=2, height=2)
        with pytest.raises(ValueError):
            field.evaporate(1.5)
        with pytest.raises(ValueError):
            field.deposit("edge", -np.ones((2, 2)))
        with pytest.raises(ValueError):
            field.deposit("edge", np.ones((3, 2)))
        with pytest.raises(ValueError):
            field.scale("edge", -1.0)

    def test_snapshot_is_isolated(self):
        """スナップショットは後の変更の影響を受けず、書き込みもできない"""
        field = PheromoneField(["a", "b"], width=2, height=2)
        field.deposit("a", np.ones((2, 2)))
        snapshot = field.snapshot()
        field.deposit("b", np.full((2, 2), 5.0))

        assert snapshot.intensity((1, 1)) == pytest.approx(1.0)
        assert np.all(snapshot["b"] == 0.0)
        with pytest.raises(ValueError):
            snapshot["a"][0, 0] = 3.0

    def test_layer_view_is_read_only(self):
        field = PheromoneField(["a"], width=2, height=2)
        with pytest.raises(ValueError):
            field.layer("a")[0, 0] = 1.0

    def test_normalize_and_greyscale(self):
        """正規化とグレースケール変換"""
        field = PheromoneField(["a", "b"], width=2, height=1)
        field.deposit("a", np.array([[1.0, 4.0]]))
        field.normalize("a")
        assert np.allclose(field.layer("a"), [[0.25, 1.0]])

        grey = field.to_greyscale()
        assert grey["a"].dtype == np.uint8
        assert grey["a"].tolist() == [[64, 255]]
        assert grey["b"].tolist() == [[0, 0]]

    def test_copy_and_reset(self):
        field = PheromoneField(["a"], width=2, height=2)
        field.deposit("a", np.ones((2, 2)))
        clone = field.copy()
        field.reset()
        assert np.all(field.layer("a") == 0.0)
        assert np.all(clone.layer("a") == 1.0)

    def test_non_negative_after_operations(self):
        """揮発・付加・減衰を繰り返しても非負"""
        rng = np.random.default_rng(0)
        field = PheromoneField(["a", "b"], width=5, height=4)
        for _ in range(20):
            field.deposit("a", rng.random((4, 5)))
            field.evaporate({"a": 0.3, "b": 1.0})
            field.scale("b", rng.random((4, 5)))
            field.normalize("a")
            assert field.is_non_negative()
