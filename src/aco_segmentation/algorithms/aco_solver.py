"""
ACO Solverモジュール

多目的ACOによる画像セグメンテーションの世代ループ・再起動ループを実装します。

【アルゴリズム概要】
1. 各世代で複数のアリを並行に歩かせ、経路を付加バッファに記録
2. 世代終了時に局所更新規則（揮発 → 付加バッファのマージ）を適用
3. generations_per_global_update 世代ごとに大域評価を行う
   - フェロモン場からSegmentMapを抽出し、3つの目的関数で評価
   - 大域更新規則でフェロモンを調整
   - 解をパレートアーカイブに提示
4. 最大世代数・停滞（アーカイブが更新されない大域評価が stagnation_window 回続く）・
   外部からの停止要求のいずれかで終了
5. soft_timeout が設定されている場合、前回の再起動からの経過時間が超えると
   シミュレーション状態（フェロモン場・世代カウンタ・乱数）を作り直す。
   パレートアーカイブは再起動をまたいで保持する

【状態の所有】
- SimulationState: 1回の実行（再起動の間）の可変状態。再起動ごとに丸ごと作り直す
- ParetoArchive: ソルバーの外側で所有し、run() に渡して再起動をまたいで引き継ぐ
"""

import logging
import random
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from ..config import validate_config
from ..core.image import ImageGrid
from ..core.pheromone_field import PheromoneField
from ..exceptions import EmptyParetoFrontError
from ..modules.color_distance import get_color_distance
from ..modules.evaluator import ObjectiveEvaluator
from ..modules.pheromone import (
    GlobalPheromoneUpdater,
    PheromoneEvaporator,
    PheromoneUpdater,
    apply_local_rule,
)
from ..modules.segmentation import SegmentExtractor
from ..modules.selection import SelectionModel
from .colony import ColonyExecutor
from .pareto_archive import ParetoArchive, ParetoSolution, Scalarization

logger = logging.getLogger(__name__)

_SEED_RANGE = 2**63


class SimulationState:
    """
    1回の実行（再起動の間）の可変状態

    Attributes:
        field (PheromoneField): フェロモン場
        rng (random.Random): アリのシードを生成するマスター乱数
        restart (int): 再起動の回数（最初の実行は0）
        started_at (float): 実行開始時刻（clockの値）
        generation (int): この実行で完了した世代数
        pending (bool): 未評価の世代があるか
    """

    def __init__(
        self,
        layer_names: List[str],
        width: int,
        height: int,
        seed: int,
        restart: int,
        started_at: float,
    ):
        self.field = PheromoneField(layer_names, width, height)
        self.rng = random.Random(seed)
        self.restart = restart
        self.started_at = started_at
        self.generation = 0
        self.pending = False

    def draw_seeds(self, count: int) -> List[int]:
        """アリごとの乱数シードを生成"""
        return [self.rng.randrange(_SEED_RANGE) for _ in range(count)]


class ACOSolver:
    """
    多目的ACOによる画像セグメンテーションのソルバー

    Attributes:
        config (Dict): 設定辞書
        image (ImageGrid): 対象画像
        selection (SelectionModel): 遷移選択モデル
        evaluator (ObjectiveEvaluator): 目的関数の評価器
        extractor (SegmentExtractor): セグメント抽出
        pheromone_updater (PheromoneUpdater): フェロモン付加ロジック
        pheromone_evaporator (PheromoneEvaporator): フェロモン揮発ロジック
        global_updater (GlobalPheromoneUpdater): 大域更新ロジック
        colony (ColonyExecutor): 世代の並行実行
        restarts (int): 直前の run() での再起動回数
        stop_reason (Optional[str]): 直前の run() の終了理由
    """

    def __init__(
        self, config: Dict, image: ImageGrid, clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            config: 設定辞書
            image: 対象画像
            clock: 経過時間の計測に使う関数（秒）

        Raises:
            InvalidConfigurationError: 設定または画像サイズが不正な場合
        """
        validate_config(config, image.width, image.height)
        self.config = config
        self.image = image
        self.clock = clock

        # 評価・抽出・勾配シグナルは目的関数の色距離で統一
        distance = get_color_distance(config["objectives"]["color_distance"])
        self.selection = SelectionModel(config, image)
        self.evaluator = ObjectiveEvaluator(distance)
        self.extractor = SegmentExtractor(
            config["segmentation"]["boundary_layer"],
            config["segmentation"]["boundary_threshold"],
            distance,
        )
        self.pheromone_updater = PheromoneUpdater(config, image, distance)
        self.pheromone_evaporator = PheromoneEvaporator(config)
        self.global_updater = GlobalPheromoneUpdater(config)
        self.colony = ColonyExecutor(config, image, self.selection, self.pheromone_updater)

        # ACOパラメータ
        aco = config["aco"]
        self.ants_per_generation = aco["ants_per_generation"]
        self.max_generations = aco["max_generations"]
        self.generations_per_global_update = aco["generations_per_global_update"]
        self.stagnation_window = aco.get("stagnation_window", 0)
        self.soft_timeout = aco.get("soft_timeout")
        self.layer_names = list(config["pheromone"]["layers"].keys())
        self.visualize_generations = config.get("output", {}).get(
            "visualize_generations", False
        )

        self.restarts = 0
        self.stop_reason: Optional[str] = None

    def run(
        self,
        archive: Optional[ParetoArchive] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> Tuple[List[Dict], ParetoArchive]:
        """
        ACOを実行

        Args:
            archive: 引き継ぐパレートアーカイブ（省略時は新規作成）
            stop_event: 外部からの停止要求（世代の間でのみ確認）

        Returns:
            (各世代の結果のリスト, パレートアーカイブ)

        Raises:
            EmptyParetoFrontError: 評価を1回以上行ったのにアーカイブが空の場合
        """
        if archive is None:
            archive = ParetoArchive(max_size=self.config["pareto"].get("max_size", 0))

        master = random.Random(self.config["experiment"].get("seed"))
        results: List[Dict] = []
        evaluations = 0
        total_generations = 0
        # アーカイブが更新されなかった評価の連続回数
        stale_evaluations = 0

        self.restarts = 0
        self.stop_reason = None
        state = self._new_state(master, restart=0)

        while True:
            self.stop_reason = self._check_stop(total_generations, stale_evaluations, stop_event)
            if self.stop_reason is not None:
                break

            stats = self._run_generation(state, total_generations)
            total_generations += 1

            # 【大域評価】この実行の世代数が周期に達したら評価
            if state.generation % self.generations_per_global_update == 0:
                admitted = self._evaluate(state, archive, stats["generation"])
                evaluations += 1
                stats["evaluated"] = True
                stats["admitted"] = admitted
                stale_evaluations = 0 if admitted else stale_evaluations + 1
            stats["archive_size"] = len(archive)
            results.append(stats)

            logger.debug(
                "Generation %d (restart %d): finished=%d stuck=%d archive=%d",
                stats["generation"],
                stats["restart"],
                stats["finished"],
                stats["stuck"],
                stats["archive_size"],
            )

            # 【ソフトタイムアウト】終了しない場合のみ再起動
            if self.soft_timeout is None:
                continue
            if self._check_stop(total_generations, stale_evaluations, stop_event) is not None:
                continue
            elapsed = self.clock() - state.started_at
            if elapsed < self.soft_timeout:
                continue

            if state.pending:
                admitted = self._evaluate(state, archive, stats["generation"])
                evaluations += 1
                stats["evaluated"] = True
                stats["admitted"] = admitted
                stats["archive_size"] = len(archive)
                stale_evaluations = 0 if admitted else stale_evaluations + 1
            self.restarts += 1
            logger.info(
                "Soft timeout after %.3fs and %d generation(s); restart %d (archive size %d)",
                elapsed,
                state.generation,
                self.restarts,
                len(archive),
            )
            state = self._new_state(master, restart=self.restarts)

        # 【終了処理】未評価の世代が残っていれば評価
        if state.pending:
            admitted = self._evaluate(state, archive, total_generations - 1)
            evaluations += 1
            if results:
                results[-1]["evaluated"] = True
                results[-1]["admitted"] = admitted
                results[-1]["archive_size"] = len(archive)

        logger.info(
            "Finished after %d generation(s) and %d restart(s): %s, archive size %d",
            total_generations,
            self.restarts,
            self.stop_reason,
            len(archive),
        )

        if evaluations > 0 and len(archive) == 0:
            raise EmptyParetoFrontError(
                f"Pareto archive is empty after {evaluations} evaluation(s)"
            )
        return results, archive

    def _new_state(self, master: random.Random, restart: int) -> SimulationState:
        return SimulationState(
            self.layer_names,
            self.image.width,
            self.image.height,
            seed=master.randrange(_SEED_RANGE),
            restart=restart,
            started_at=self.clock(),
        )

    def _check_stop(
        self,
        total_generations: int,
        stale_evaluations: int,
        stop_event: Optional[threading.Event],
    ) -> Optional[str]:
        """終了理由（続行する場合は None）"""
        if stop_event is not None and stop_event.is_set():
            return "stopped"
        if total_generations >= self.max_generations:
            return "max_generations"
        if (
            self.stagnation_window > 0
            and stale_evaluations >= self.stagnation_window
        ):
            return "stagnation"
        return None

    def _run_generation(self, state: SimulationState, generation: int) -> Dict:
        """1世代を実行し、局所更新規則を適用"""
        seeds = state.draw_seeds(self.ants_per_generation)
        outcome = self.colony.run_generation(state.field, seeds)
        apply_local_rule(
            state.field, outcome.buffers, self.pheromone_evaporator, self.pheromone_updater
        )
        state.generation += 1
        state.pending = True

        stats = {
            "generation": generation,
            "restart": state.restart,
            "run_generation": state.generation,
            "finished": outcome.finished,
            "stuck": outcome.stuck,
            "evaluated": False,
            "admitted": False,
        }
        if self.visualize_generations:
            stats["pheromone_snapshots"] = state.field.to_greyscale()
        return stats

    def _evaluate(self, state: SimulationState, archive: ParetoArchive, generation: int) -> bool:
        """
        大域評価：抽出 → 評価 → 大域更新 → アーカイブへの提示

        Returns:
            解がアーカイブに受け入れられた場合True
        """
        field = state.field
        segment_map = self.extractor.extract(field, self.image)
        objectives = self.evaluator.evaluate(self.image, segment_map)
        solution = ParetoSolution(
            objectives=objectives,
            segment_map=segment_map,
            pheromones={name: field.layer(name).copy() for name in field.names},
            generation=generation,
            restart=state.restart,
        )

        self.global_updater.apply(field, self.image, segment_map, self.evaluator)
        admitted = archive.insert(solution)
        state.pending = False

        logger.info(
            "Evaluated generation %d: %s (%s, archive size %d)",
            generation,
            solution.stat_info(),
            "admitted" if admitted else "rejected",
            len(archive),
        )
        return admitted


def select_solution(
    archive: ParetoArchive, scalarization: Optional[Scalarization] = None
) -> ParetoSolution:
    """
    アーカイブから1つの解を選択

    Args:
        archive: パレートアーカイブ
        scalarization: 大きいほど良いスコアを返す関数（省略時はエッジ値）

    Returns:
        選択された解

    Raises:
        EmptyParetoFrontError: アーカイブが空の場合
    """
    return archive.select(scalarization)
