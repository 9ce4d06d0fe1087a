"""
セグメント抽出のテスト
"""

import numpy as np
import pytest

from aco_segmentation.core.image import ImageGrid
from aco_segmentation.core.pheromone_field import PheromoneField
from aco_segmentation.modules.color_distance import euclidean
from aco_segmentation.modules.segmentation import SegmentExtractor, SegmentMap


def field_with_boundary(grid):
    grid = np.asarray(grid, dtype=float)
    field = PheromoneField(["edge", "connectivity"], grid.shape[1], grid.shape[0])
    field.deposit("edge", grid)
    return field


def assert_partition(segment_map, image):
    """全画素が1回ずつ、いずれかのセグメントに含まれる"""
    assert segment_map.covers(image.width, image.height)
    positions = [p for members in segment_map.segments().values() for p in members]
    assert len(positions) == image.width * image.height
    assert set(positions) == set(image.positions())


class TestSegmentMap:
    """SegmentMapのテスト"""

    def test_basic(self):
        seg = SegmentMap(np.array([[0, 0, 1], [0, 1, 1]]))
        assert seg.num_segments == 2
        assert seg.sizes().tolist() == [3, 3]
        assert seg.label_at((2, 0)) == 1
        assert seg.segments()[0] == [(0, 0), (1, 0), (0, 1)]

    def test_rejects_invalid_labels(self):
        """未割り当て・欠番のラベルは拒否"""
        with pytest.raises(ValueError):
            SegmentMap(np.array([[0, -1]]))
        with pytest.raises(ValueError):
            SegmentMap(np.array([[0, 2]]))
        with pytest.raises(ValueError):
            SegmentMap(np.zeros(3, dtype=int))

    def test_boundary_mask(self):
        seg = SegmentMap(np.array([[0, 0, 1, 1]]))
        assert seg.boundary_mask().tolist() == [[False, True, True, False]]

    def test_read_only(self):
        seg = SegmentMap(np.zeros((2, 2), dtype=int))
        with pytest.raises(ValueError):
            seg.labels[0, 0] = 1


class TestSegmentExtractor:
    """SegmentExtractorのテスト"""

    def test_no_boundary_is_one_segment(self):
        """境界層が全て0なら画像全体が1つのセグメント"""
        image = ImageGrid(np.zeros((4, 4, 3)))
        field = field_with_boundary(np.zeros((4, 4)))
        seg = SegmentExtractor("edge", 0.2, euclidean).extract(field, image)
        assert seg.num_segments == 1
        assert_partition(seg, image)

    def test_full_boundary_is_one_segment(self):
        """全画素が境界なら画像全体が1つのセグメント"""
        image = ImageGrid(np.zeros((3, 3, 3)))
        field = field_with_boundary(np.ones((3, 3)))
        seg = SegmentExtractor("edge", 0.2, euclidean).extract(field, image)
        assert seg.num_segments == 1
        assert_partition(seg, image)

    def test_vertical_boundary(self):
        """縦の境界で左右に分かれ、境界画素は色の近い側に割り当てられる"""
        pixels = np.zeros((6, 8, 3))
        pixels[:, 4:] = 255.0
        image = ImageGrid(pixels)
        grid = np.zeros((6, 8))
        grid[:, 3:5] = 1.0
        field = field_with_boundary(grid)

        seg = SegmentExtractor("edge", 0.2, euclidean).extract(field, image)
        assert seg.num_segments == 2
        assert np.all(seg.labels[:, :4] == 0)
        assert np.all(seg.labels[:, 4:] == 1)
        assert_partition(seg, image)

    def test_threshold(self):
        """正規化後に閾値以下の画素は境界にならない"""
        image = ImageGrid(np.zeros((1, 5, 3)))
        grid = np.array([[0.0, 0.1, 1.0, 0.1, 0.0]])
        extractor = SegmentExtractor("edge", 0.2, euclidean)
        mask = extractor.boundary_mask(field_with_boundary(grid))
        assert mask.tolist() == [[False, False, True, False, False]]
        seg = extractor.extract(field_with_boundary(grid), image)
        assert seg.num_segments == 2

    def test_labels_in_row_major_order(self):
        """ラベルは行優先で最初の画素の順"""
        image = ImageGrid(np.zeros((3, 3, 3)))
        grid = np.zeros((3, 3))
        grid[1, :] = 1.0
        seg = SegmentExtractor("edge", 0.2, euclidean).extract(field_with_boundary(grid), image)
        assert seg.label_at((0, 0)) == 0
        assert seg.label_at((0, 2)) == 1

    def test_tie_breaks_to_smaller_label(self):
        """色距離が同じならラベル番号の小さい方"""
        image = ImageGrid(np.zeros((3, 1, 3)))
        grid = np.array([[0.0], [1.0], [0.0]])
        seg = SegmentExtractor("edge", 0.2, euclidean).extract(field_with_boundary(grid), image)
        assert seg.labels[:, 0].tolist() == [0, 0, 1]

    def test_boundary_grows_in_rounds(self):
        """境界画素は内側から1画素ずつ、その時点でラベル付きの近傍だけを見て埋まる"""
        pixels = np.zeros((1, 5, 3))
        pixels[0, 2:] = 255.0
        image = ImageGrid(pixels)
        grid = np.array([[0.0, 1.0, 1.0, 1.0, 0.0]])
        seg = SegmentExtractor("edge", 0.2, euclidean).extract(field_with_boundary(grid), image)
        # 1段目で x=1 と x=3、2段目で x=2 が色の近い右側へ
        assert seg.labels[0].tolist() == [0, 0, 1, 1, 1]

    def test_mostly_boundary_field(self):
        """内部の画素がわずかでも、全画素が割り当てられる"""
        rng = np.random.default_rng(3)
        image = ImageGrid(rng.random((60, 80, 3)) * 255)
        grid = np.ones((60, 80))
        grid[0, 0] = 0.0
        grid[59, 79] = 0.0
        seg = SegmentExtractor("edge", 0.2, euclidean).extract(field_with_boundary(grid), image)
        assert seg.num_segments == 2
        assert seg.label_at((0, 0)) == 0
        assert seg.label_at((79, 59)) == 1
        assert_partition(seg, image)

    def test_partition_on_random_fields(self):
        """任意のフェロモン場で分割の性質が保たれる"""
        rng = np.random.default_rng(11)
        image = ImageGrid(rng.random((7, 9, 3)) * 255)
        extractor = SegmentExtractor("edge", 0.3, euclidean)
        for _ in range(10):
            seg = extractor.extract(field_with_boundary(rng.random((7, 9))), image)
            assert_partition(seg, image)
            assert seg.sizes().min() >= 1

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            SegmentExtractor("edge", 1.0, euclidean)
