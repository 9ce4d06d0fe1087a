"""
フェロモン更新規則のテスト
"""

import itertools
import random

import numpy as np
import pytest

from aco_segmentation.config import default_config
from aco_segmentation.core.image import ImageGrid
from aco_segmentation.core.pheromone_field import PheromoneField
from aco_segmentation.modules.color_distance import euclidean
from aco_segmentation.modules.evaluator import ObjectiveEvaluator
from aco_segmentation.modules.pheromone import (
    DepositBuffer,
    GlobalPheromoneUpdater,
    PheromoneEvaporator,
    PheromoneUpdater,
    apply_local_rule,
)
from aco_segmentation.modules.segmentation import SegmentMap


def two_tone_image(width=6, height=4, column=3):
    pixels = np.zeros((height, width, 3))
    pixels[:, column:] = 255.0
    return ImageGrid(pixels)


def make_field(config, image):
    return PheromoneField(config["pheromone"]["layers"].keys(), image.width, image.height)


def random_path(rng, width, height, length):
    x, y = rng.randrange(width), rng.randrange(height)
    path = [(x, y)]
    while len(path) < length:
        dx, dy = rng.choice([(1, 0), (-1, 0), (0, 1), (0, -1), (1, 1), (-1, -1)])
        px, py = x + dx, y + dy
        if 0 <= px < width and 0 <= py < height:
            x, y = px, py
            path.append((x, y))
    return path


class TestDepositBuffer:
    """DepositBufferのテスト"""

    def test_signals(self):
        """trail は1、gradient は勾配、similarity は 1 - 勾配"""
        config = default_config()
        image = two_tone_image()
        gradient = image.gradient(euclidean)
        path = [(1, 0), (2, 0), (3, 0), (2, 0)]
        buffer = DepositBuffer.from_path(0, path, gradient, config["pheromone"]["layers"])

        # 重複した画素は1回分
        ys, xs, trail = buffer.deposits["connectivity"]
        assert sorted(zip(xs.tolist(), ys.tolist())) == [(1, 0), (2, 0), (3, 0)]
        assert np.all(trail == 1.0)

        _, _, edge = buffer.deposits["edge"]
        _, _, similarity = buffer.deposits["deviation"]
        assert edge.tolist() == pytest.approx([0.0, 1.0, 1.0])
        assert similarity.tolist() == pytest.approx([1.0, 0.0, 0.0])

    def test_normalized_mode(self):
        """normalized モードでは異なる画素数で割る"""
        config = default_config()
        image = two_tone_image()
        gradient = image.gradient(euclidean)
        path = [(0, 0), (1, 1), (0, 0), (1, 0)]
        buffer = DepositBuffer.from_path(
            0, path, gradient, config["pheromone"]["layers"], mode="normalized"
        )
        assert buffer.total_amount("connectivity") == pytest.approx(1.0)

    def test_deposit_weight(self):
        config = default_config()
        config["pheromone"]["layers"]["connectivity"]["deposit_weight"] = 2.5
        image = two_tone_image()
        buffer = DepositBuffer.from_path(
            0, [(0, 0), (1, 0)], image.gradient(euclidean), config["pheromone"]["layers"]
        )
        assert buffer.total_amount("connectivity") == pytest.approx(5.0)
        assert buffer.total_amount("missing") == 0.0


class TestLocalRule:
    """局所更新規則のテスト"""

    def test_evaporator_overrides(self):
        """層ごとの揮発率の上書き"""
        config = default_config()
        config["aco"]["evaporation_rate"] = 0.5
        config["pheromone"]["layers"]["edge"]["evaporation_rate"] = 0.0
        image = two_tone_image()
        field = make_field(config, image)
        for name in field.names:
            field.deposit(name, np.ones(field.shape))

        PheromoneEvaporator(config).evaporate(field)
        assert np.allclose(field.layer("edge"), 1.0)
        assert np.allclose(field.layer("connectivity"), 0.5)

    def test_evaporate_then_merge(self):
        """揮発してから付加する"""
        config = default_config()
        config["aco"]["evaporation_rate"] = 0.5
        image = two_tone_image()
        field = make_field(config, image)
        field.deposit("connectivity", np.full(field.shape, 2.0))

        updater = PheromoneUpdater(config, image, euclidean)
        buffer = updater.build_buffer(0, [(0, 0), (1, 0)])
        apply_local_rule(field, [buffer], PheromoneEvaporator(config), updater)

        layer = field.layer("connectivity")
        assert layer[0, 0] == pytest.approx(2.0)
        assert layer[1, 1] == pytest.approx(1.0)

    def test_merge_is_commutative(self):
        """バッファをどの順序でマージしても同じフェロモン場になる"""
        config = default_config()
        image = two_tone_image()
        updater = PheromoneUpdater(config, image, euclidean)
        rng = random.Random(7)
        buffers = [
            updater.build_buffer(ant_id, random_path(rng, image.width, image.height, 12))
            for ant_id in range(5)
        ]

        reference = make_field(config, image)
        updater.merge(reference, buffers)
        for order in itertools.permutations(buffers):
            field = make_field(config, image)
            updater.merge(field, list(order))
            for name in field.names:
                assert np.array_equal(field.layer(name), reference.layer(name))

    def test_merge_accumulates_overlaps(self):
        """複数のアリが同じ画素を通れば付加は合計される"""
        config = default_config()
        image = two_tone_image()
        updater = PheromoneUpdater(config, image, euclidean)
        buffers = [updater.build_buffer(i, [(0, 0), (1, 0)]) for i in range(3)]
        field = make_field(config, image)
        updater.merge(field, buffers)
        assert field.layer("connectivity")[0, 0] == pytest.approx(3.0)

    def test_no_buffers_only_evaporates(self):
        """付加がなければ揮発のみ"""
        config = default_config()
        image = two_tone_image()
        field = make_field(config, image)
        field.deposit("edge", np.ones(field.shape))
        updater = PheromoneUpdater(config, image, euclidean)
        apply_local_rule(field, [], PheromoneEvaporator(config), updater)
        assert np.allclose(field.layer("edge"), 0.9)


class TestGlobalPheromoneUpdater:
    """大域更新規則のテスト"""

    def test_reinforce_and_decay(self):
        """境界のエッジ層を強化し、内部の接続性層を減衰"""
        config = default_config()
        config["global_update"]["normalize"] = False
        image = two_tone_image()
        field = make_field(config, image)
        field.deposit("connectivity", np.ones(field.shape))

        labels = np.zeros(image.shape, dtype=int)
        labels[:, 3:] = 1
        segment_map = SegmentMap(labels)
        evaluator = ObjectiveEvaluator(euclidean)

        GlobalPheromoneUpdater(config).apply(field, image, segment_map, evaluator)

        edge = field.layer("edge")
        assert edge[:, 2:4].min() > 0.0
        assert np.all(edge[:, :2] == 0.0)
        assert edge.max() == pytest.approx(0.5)

        connectivity = field.layer("connectivity")
        assert np.allclose(connectivity[:, 0], 0.5)
        assert np.allclose(connectivity[:, 2:4], 1.0)

    def test_normalize(self):
        config = default_config()
        image = two_tone_image()
        field = make_field(config, image)
        field.deposit("deviation", np.full(field.shape, 4.0))
        segment_map = SegmentMap(np.zeros(image.shape, dtype=int))
        GlobalPheromoneUpdater(config).apply(
            field, image, segment_map, ObjectiveEvaluator(euclidean)
        )
        assert np.allclose(field.layer("deviation"), 1.0)
        assert field.is_non_negative()

    def test_single_segment_changes_nothing_on_edges(self):
        """セグメントが1つなら境界はなく、エッジ層は強化されない"""
        config = default_config()
        image = two_tone_image()
        field = make_field(config, image)
        segment_map = SegmentMap(np.zeros(image.shape, dtype=int))
        GlobalPheromoneUpdater(config).apply(
            field, image, segment_map, ObjectiveEvaluator(euclidean)
        )
        assert np.all(field.layer("edge") == 0.0)
