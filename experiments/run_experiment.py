"""
実験実行スクリプト

画像とconfig.yamlの設定に基づき、多目的ACOによるセグメンテーションを実行し、
パレートアーカイブの各解を画像とCSVに保存します。

使い方:
    python experiments/run_experiment.py image.png results/ -c config/config.yaml -s 42
"""

import argparse
import csv
import logging
import sys
from datetime import datetime
from pathlib import Path

# プロジェクトルートをPythonパスに追加
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from aco_segmentation.algorithms.aco_solver import ACOSolver, select_solution
from aco_segmentation.config import default_config, load_config
from aco_segmentation.core.image import ImageGrid
from aco_segmentation.exceptions import SegmentationError
from aco_segmentation.logging_config import setup_logging
from aco_segmentation.utils.metrics import MetricsCalculator
from aco_segmentation.utils.visualization import Visualizer


def parse_args(argv=None) -> argparse.Namespace:
    """コマンドライン引数を解析"""
    parser = argparse.ArgumentParser(
        description="Multi-objective ant colony image segmentation"
    )
    parser.add_argument("image", type=Path, help="input image (PNG/JPEG)")
    parser.add_argument("results_dir", type=Path, help="directory for the results")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=project_root / "config" / "config.yaml",
        help="configuration file (YAML)",
    )
    parser.add_argument("-s", "--seed", type=int, help="random seed")
    parser.add_argument(
        "-t", "--timeout", type=float, help="soft timeout in seconds (0 = restart every generation)"
    )
    parser.add_argument("-p", "--parallel", type=int, help="number of concurrent ants")
    parser.add_argument(
        "-d",
        "--detailed",
        action="store_true",
        help="save pheromone layers of every generation",
    )
    parser.add_argument(
        "-e",
        "--eval-steps",
        action="store_true",
        help="run the global evaluation after every generation",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> dict:
    """
    設定ファイルを読み込み、コマンドライン引数で上書きする

    Args:
        args: コマンドライン引数

    Returns:
        設定辞書
    """
    config = load_config(args.config) if args.config.exists() else default_config()

    config["experiment"]["image_path"] = str(args.image)
    config["experiment"]["results_dir"] = str(args.results_dir)
    if args.seed is not None:
        config["experiment"]["seed"] = args.seed
    if args.timeout is not None:
        config["aco"]["soft_timeout"] = args.timeout
    if args.parallel is not None:
        config["aco"]["parallelity"] = args.parallel
    if args.detailed:
        config["output"]["visualize_generations"] = True
    if args.eval_steps:
        config["aco"]["generations_per_global_update"] = 1
    return config


def save_archive(archive, image: ImageGrid, visualizer: Visualizer, results_dir: Path) -> Path:
    """
    アーカイブの各解を画像とCSVに保存

    Args:
        archive: パレートアーカイブ
        image: 対象画像
        visualizer: Visualizerオブジェクト
        results_dir: 結果出力ディレクトリ

    Returns:
        objectives.csv のパス
    """
    csv_path = results_dir / "objectives.csv"
    with open(csv_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(
            [
                "stat_info",
                "segments",
                "edge_value",
                "connectivity_measure",
                "overall_deviation",
                "generation",
                "restart",
            ]
        )
        for solution in archive:
            info = solution.stat_info()
            visualizer.save_segment_labels(solution.segment_map, f"{info}-labels.png")
            visualizer.save_contour_overlay(image, solution.segment_map, f"{info}-contours.png")
            visualizer.save_colorized_regions(image, solution.segment_map, f"{info}-regions.png")
            writer.writerow(
                [
                    info,
                    solution.segment_map.num_segments,
                    solution.objectives.edge_value,
                    solution.objectives.connectivity_measure,
                    solution.objectives.overall_deviation,
                    solution.generation,
                    solution.restart,
                ]
            )
    return csv_path


def main(argv=None) -> int:
    """メイン実験"""
    args = parse_args(argv)

    # ===== 出力ディレクトリの作成 =====
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    results_dir = args.results_dir / timestamp
    results_dir.mkdir(parents=True, exist_ok=True)

    setup_logging(
        logging.DEBUG if args.verbose else logging.INFO,
        log_file=str(results_dir / "run.log"),
    )

    # ===== 設定・画像の読み込み =====
    config = build_config(args)
    image = ImageGrid.from_file(args.image)

    print("=" * 80)
    print(f"Experiment: {config['experiment']['name']}")
    print(f"Image: {args.image} ({image.width}x{image.height})")
    print(f"Results directory: {results_dir}")
    print("=" * 80)

    # ===== ACOを実行 =====
    try:
        solver = ACOSolver(config, image)
        results, archive = solver.run()
    except SegmentationError as e:
        print(f"Error: {e}")
        return 1

    # ===== 結果の保存 =====
    visualizer = Visualizer(results_dir)
    csv_path = save_archive(archive, image, visualizer, results_dir)

    if config["output"]["visualize_generations"]:
        pheromone_dir = Visualizer(results_dir / "pheromones")
        for stats in results:
            snapshots = stats.get("pheromone_snapshots")
            if snapshots:
                pheromone_dir.save_pheromone_layers(
                    snapshots, prefix=f"gen{stats['generation']:05d}"
                )

    vectors = [v.as_tuple() for v in archive.objective_vectors()]
    if config["output"]["save_graphs"] and results:
        visualizer.plot_pareto_front_2d(vectors)
        visualizer.plot_archive_history(results)

    # ===== サマリー =====
    metrics_calculator = MetricsCalculator(config["pareto"]["reference_point"])
    print(f"\n{'='*80}")
    print("Summary")
    print(f"{'='*80}")
    print(f"Generations: {len(results)}, Restarts: {solver.restarts}, Stop: {solver.stop_reason}")
    print(f"Pareto archive: {len(archive)} solution(s)")
    for solution in archive:
        print(f"  {solution.stat_info()} (generation {solution.generation})")
    if len(archive):
        print(f"Hypervolume: {metrics_calculator.calculate_hypervolume(vectors):.3E}")
        print(f"Spacing: {metrics_calculator.calculate_spread(vectors):.3E}")
        print(f"Selected: {select_solution(archive).stat_info()}")

    print(f"\n✅ Experiment completed! Results saved to: {results_dir}")
    print(f"📊 Objectives: {csv_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
