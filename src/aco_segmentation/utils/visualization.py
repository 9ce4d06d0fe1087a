"""
可視化モジュール

セグメンテーション結果（ラベル画像・輪郭・領域の平均色）、フェロモン層、
パレートフロントとアーカイブサイズの推移を画像として保存します。
"""

from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np

from ..core.image import ImageGrid
from ..modules.segmentation import SegmentMap

OBJECTIVE_LABELS = ("Edge Value", "Connectivity Measure", "Overall Deviation")


class Visualizer:
    """可視化を行うクラス"""

    def __init__(self, output_dir: Path):
        """
        Args:
            output_dir: 出力ディレクトリ
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save_segment_labels(self, segment_map: SegmentMap, filename: str) -> Path:
        """
        セグメントラベルを色分けした画像を保存

        Args:
            segment_map: セグメント
            filename: 保存するファイル名

        Returns:
            保存先のパス
        """
        output_path = self.output_dir / filename
        vmax = max(segment_map.num_segments - 1, 1)
        plt.imsave(output_path, segment_map.labels, cmap="nipy_spectral", vmin=0, vmax=vmax)
        return output_path

    def save_contour_overlay(
        self,
        image: ImageGrid,
        segment_map: SegmentMap,
        filename: str,
        color: Tuple[int, int, int] = (255, 0, 0),
    ) -> Path:
        """
        元画像にセグメント境界を重ねた画像を保存

        Args:
            image: 元画像
            segment_map: セグメント
            filename: 保存するファイル名
            color: 境界の色（RGB）

        Returns:
            保存先のパス
        """
        rgb = np.array(image.pixels, dtype=float)
        rgb[segment_map.boundary_mask()] = color
        output_path = self.output_dir / filename
        plt.imsave(output_path, np.clip(rgb / 255.0, 0.0, 1.0))
        return output_path

    def save_colorized_regions(
        self, image: ImageGrid, segment_map: SegmentMap, filename: str
    ) -> Path:
        """
        各セグメントをその平均色で塗りつぶした画像を保存

        Args:
            image: 元画像
            segment_map: セグメント
            filename: 保存するファイル名

        Returns:
            保存先のパス
        """
        labels = segment_map.labels.ravel()
        pixels = image.pixels.reshape(-1, 3)
        sizes = np.bincount(labels, minlength=segment_map.num_segments).astype(float)
        means = np.stack(
            [np.bincount(labels, weights=pixels[:, c], minlength=len(sizes)) for c in range(3)],
            axis=-1,
        ) / sizes[:, np.newaxis]

        colorized = means[segment_map.labels]
        output_path = self.output_dir / filename
        plt.imsave(output_path, np.clip(colorized / 255.0, 0.0, 1.0))
        return output_path

    def save_pheromone_layers(
        self, greyscale_layers: Dict[str, np.ndarray], prefix: str = "pheromone"
    ) -> List[Path]:
        """
        フェロモン層をグレースケール画像として保存

        Args:
            greyscale_layers: 層名をキーとする uint8 のグリッド（PheromoneField.to_greyscale()）
            prefix: ファイル名の接頭辞

        Returns:
            保存先のパスのリスト
        """
        paths = []
        for name, grid in greyscale_layers.items():
            output_path = self.output_dir / f"{prefix}-{name}.png"
            plt.imsave(output_path, grid, cmap="gray", vmin=0, vmax=255)
            paths.append(output_path)
        return paths

    def plot_pareto_front_2d(
        self,
        solutions: Sequence[Tuple[float, float, float]],
        x_index: int = 1,
        y_index: int = 0,
        filename: str = "pareto_front_2d.png",
    ) -> None:
        """
        パレートフロントの散布図（2次元）

        Args:
            solutions: 解のリスト [(edge, connectivity, deviation), ...]
            x_index: 横軸に使う目的関数のインデックス
            y_index: 縦軸に使う目的関数のインデックス
            filename: 保存するファイル名
        """
        fig, ax = plt.subplots(figsize=(10, 6))

        if solutions:
            xs = [sol[x_index] for sol in solutions]
            ys = [sol[y_index] for sol in solutions]
            ax.scatter(
                xs,
                ys,
                c="red",
                marker="o",
                s=100,
                label="Pareto Archive",
                alpha=0.7,
                edgecolors="black",
            )

        ax.set_xlabel(OBJECTIVE_LABELS[x_index], fontsize=12)
        ax.set_ylabel(OBJECTIVE_LABELS[y_index], fontsize=12)
        ax.legend()
        ax.grid(True, alpha=0.3)

        # 保存
        output_path = self.output_dir / filename
        plt.tight_layout()
        plt.savefig(output_path, dpi=300)
        plt.close(fig)
        print(f"Saved: {output_path}")

    def plot_archive_history(
        self, results: List[Dict], filename: str = "archive_history.png"
    ) -> None:
        """
        アーカイブサイズの推移をプロット（再起動の位置を縦線で表示）

        Args:
            results: ACOSolver.run() が返す世代ごとの結果
            filename: 保存するファイル名
        """
        fig, ax = plt.subplots(figsize=(10, 6))

        generations = [r["generation"] for r in results]
        sizes = [r["archive_size"] for r in results]
        ax.plot(generations, sizes, marker="o", linestyle="-", linewidth=2)

        for previous, current in zip(results, results[1:]):
            if current["restart"] != previous["restart"]:
                ax.axvline(current["generation"], color="gray", linestyle="--", alpha=0.5)

        ax.set_xlabel("Generation", fontsize=12)
        ax.set_ylabel("Pareto Archive Size", fontsize=12)
        ax.grid(True, alpha=0.3)

        # 保存
        output_path = self.output_dir / filename
        plt.tight_layout()
        plt.savefig(output_path, dpi=300)
        plt.close(fig)
        print(f"Saved: {output_path}")
