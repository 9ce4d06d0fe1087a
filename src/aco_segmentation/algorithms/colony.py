"""
コロニー（世代）実行モジュール

1世代分のアリを並行に歩かせ、各アリ専用の付加バッファを集めます。

【並行実行の規約】
- 世代の開始時にフェロモン場のスナップショットを1つ作り、全てのアリはそれだけを読む
- 各アリは専用の乱数生成器 random.Random(seed) と専用の付加バッファを持つ
- 共有の可変状態を持たないため、歩行中のロックは不要
- 結果はアリIDの順に返るため、ワーカー数によらず同じシードから同じ結果が得られる
"""

import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import resolve_max_ant_steps
from ..core.ant import Ant, AntPhase
from ..core.image import ImageGrid, Position
from ..core.pheromone_field import PheromoneField, PheromoneSnapshot
from ..modules.pheromone import DepositBuffer, PheromoneUpdater
from ..modules.selection import SelectionModel


@dataclass
class AntResult:
    """1匹のアリの歩行結果"""

    ant_id: int
    phase: AntPhase
    path: List[Position]

    @property
    def steps(self) -> int:
        """移動回数"""
        return len(self.path) - 1

    @property
    def finished(self) -> bool:
        return self.phase is AntPhase.FINISHED


@dataclass
class GenerationOutcome:
    """
    1世代の実行結果

    Attributes:
        results (List[AntResult]): アリIDの順に並んだ歩行結果
        buffers (List[DepositBuffer]): FINISHEDのアリの付加バッファ
    """

    results: List[AntResult] = field(default_factory=list)
    buffers: List[DepositBuffer] = field(default_factory=list)

    @property
    def finished(self) -> int:
        return sum(1 for r in self.results if r.finished)

    @property
    def stuck(self) -> int:
        return sum(1 for r in self.results if r.phase is AntPhase.STUCK)


def spawn_ant(ant_id: int, image: ImageGrid, max_steps: int, rng: random.Random) -> Ant:
    """
    出発点と目標点をランダムに選んでアリを生成

    目標点は出発点と異なるまで引き直します（画像は2画素以上が前提）。
    """
    origin = (rng.randrange(image.width), rng.randrange(image.height))
    target = origin
    while target == origin:
        target = (rng.randrange(image.width), rng.randrange(image.height))
    return Ant(ant_id, origin, target, max_steps)


def walk_ant(
    ant: Ant, snapshot: PheromoneSnapshot, selection: SelectionModel, rng: random.Random
) -> AntResult:
    """
    アリを往復させる

    SPAWNED → OUTBOUND → RETURNING → FINISHED の順に進み、
    ステップ上限を超えるか移動先が選べなければ STUCK で終了します。

    Args:
        ant: 生成直後のアリ
        snapshot: フェロモン場のスナップショット
        selection: 遷移選択モデル
        rng: アリ専用の乱数生成器

    Returns:
        歩行結果
    """
    ant.depart()
    while ant.is_active():
        if ant.has_reached_target():
            if ant.phase is AntPhase.OUTBOUND:
                ant.turn_back()
                continue
            ant.finish()
            break

        if ant.is_trip_exhausted():
            ant.get_stuck()
            break

        next_position = selection.choose_next(ant, snapshot, rng)
        if next_position is None:
            ant.get_stuck()
            break
        ant.move_to(next_position)

    return AntResult(ant_id=ant.ant_id, phase=ant.phase, path=list(ant.path))


class ColonyExecutor:
    """
    1世代分のアリを並行に実行するクラス

    Attributes:
        image (ImageGrid): 対象画像
        selection (SelectionModel): 遷移選択モデル
        updater (PheromoneUpdater): 経路から付加バッファを作るロジック
        parallelity (int): 同時に歩くアリの上限（ワーカー数）
        max_steps (int): 1往路/復路あたりのステップ上限
    """

    def __init__(
        self,
        config: Dict,
        image: ImageGrid,
        selection: SelectionModel,
        updater: PheromoneUpdater,
    ):
        self.image = image
        self.selection = selection
        self.updater = updater
        self.parallelity = config["aco"]["parallelity"]
        self.max_steps = resolve_max_ant_steps(config, image.width, image.height)

    def run_generation(self, field: PheromoneField, seeds: Sequence[int]) -> GenerationOutcome:
        """
        1世代を実行

        フェロモン場は変更しません（マージは局所更新規則で行う）。

        Args:
            field: フェロモン場
            seeds: アリごとの乱数シード（要素数がアリの数）

        Returns:
            GenerationOutcome
        """
        snapshot = field.snapshot()
        tasks = [(ant_id, seed, snapshot) for ant_id, seed in enumerate(seeds)]

        if self.parallelity == 1:
            walked = [self._run_ant(task) for task in tasks]
        else:
            with ThreadPoolExecutor(max_workers=self.parallelity) as executor:
                walked = list(executor.map(self._run_ant, tasks))

        outcome = GenerationOutcome()
        for result, buffer in walked:
            outcome.results.append(result)
            if buffer is not None:
                outcome.buffers.append(buffer)
        return outcome

    def _run_ant(
        self, task: Tuple[int, int, PheromoneSnapshot]
    ) -> Tuple[AntResult, Optional[DepositBuffer]]:
        ant_id, seed, snapshot = task
        rng = random.Random(seed)
        ant = spawn_ant(ant_id, self.image, self.max_steps, rng)
        result = walk_ant(ant, snapshot, self.selection, rng)
        if not result.finished:
            return result, None
        return result, self.updater.build_buffer(ant_id, result.path)
