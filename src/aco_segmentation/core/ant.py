"""
アリ（Ant）クラス

画素格子上を歩く探索エージェントを表現するモジュール。

【アリの役割】
ランダムに選ばれた出発点から目標点まで歩き（往路）、出発点へ戻る（復路）。
往復で通過した画素の列（経路）を記録し、世代終了時のフェロモン付加に使用される。

【状態遷移】
    SPAWNED → OUTBOUND → RETURNING → FINISHED
                 │            │
                 └──→ STUCK ←─┘
- OUTBOUND: 目標点に到達すると RETURNING（目標点を出発点に変更）
- RETURNING: 出発点に到達すると FINISHED
- 1往路/復路あたりのステップ上限を超えると STUCK（終端、フェロモン付加なし）

【訪問済み集合】
往路の訪問済み集合は復路に引き継がれ、復路では往路と異なる経路が選ばれやすくなる
（再訪問は禁止ではなく、選択重みが減衰するだけ）。
"""

from enum import Enum
from typing import List, Set

from .image import Position, is_adjacent


class AntPhase(Enum):
    """アリの状態"""

    SPAWNED = "spawned"
    OUTBOUND = "outbound"
    RETURNING = "returning"
    FINISHED = "finished"
    STUCK = "stuck"


class Ant:
    """
    画素格子上のアリを表現するクラス

    Attributes:
        ant_id (int): アリの識別子（世代内で一意）
        origin (Position): 出発点
        position (Position): 現在位置
        target (Position): 現在の目標点（復路では出発点）
        max_steps (int): 1往路/復路あたりの最大ステップ数
        steps_in_trip (int): 現在の往路/復路で消費したステップ数
        phase (AntPhase): 現在の状態
        visited (Set[Position]): 訪問済み位置の集合（復路に引き継がれる）
        path (List[Position]): 通過した位置の列（出発点から始まる）

    Example:
        >>> ant = Ant(ant_id=0, origin=(0, 0), target=(1, 1), max_steps=10)
        >>> ant.depart()
        >>> ant.move_to((1, 1))
        >>> ant.has_reached_target()
        True
        >>> ant.turn_back()
        >>> ant.move_to((0, 0))
        >>> ant.finish()
        >>> ant.path
        [(0, 0), (1, 1), (0, 0)]
    """

    def __init__(self, ant_id: int, origin: Position, target: Position, max_steps: int):
        """
        アリを初期化します。

        Args:
            ant_id: アリの識別子
            origin: 出発点 (x, y)
            target: 目標点 (x, y)
            max_steps: 1往路/復路あたりの最大ステップ数

        Raises:
            ValueError: max_stepsが1未満の場合
        """
        if max_steps < 1:
            raise ValueError(f"max_steps must be positive, got {max_steps}")
        self.ant_id = ant_id
        self.origin = origin
        self.position = origin
        self.target = target
        self.max_steps = max_steps
        self.steps_in_trip = 0
        self.phase = AntPhase.SPAWNED

        self.visited: Set[Position] = {origin}
        self.path: List[Position] = [origin]

    def depart(self) -> None:
        """往路を開始（SPAWNED → OUTBOUND）"""
        self._expect(AntPhase.SPAWNED)
        self.phase = AntPhase.OUTBOUND

    def move_to(self, next_position: Position) -> None:
        """
        隣接画素へ移動します。

        Args:
            next_position: 移動先 (x, y)

        Raises:
            RuntimeError: 歩行中（OUTBOUND/RETURNING）でない場合
            ValueError: 移動先が隣接画素でない場合（長さ0の移動を含む）
        """
        if not self.is_active():
            raise RuntimeError(f"Ant {self.ant_id} cannot move in phase {self.phase}")
        if not is_adjacent(self.position, next_position):
            raise ValueError(
                f"Ant {self.ant_id} cannot move from {self.position} to {next_position}"
            )
        self.position = next_position
        self.path.append(next_position)
        self.visited.add(next_position)
        self.steps_in_trip += 1

    def has_visited(self, position: Position) -> bool:
        """指定位置を訪問済みか"""
        return position in self.visited

    def has_reached_target(self) -> bool:
        """現在の目標点に到達したか"""
        return self.position == self.target

    def is_active(self) -> bool:
        """歩行中（OUTBOUND または RETURNING）か"""
        return self.phase in (AntPhase.OUTBOUND, AntPhase.RETURNING)

    def is_trip_exhausted(self) -> bool:
        """現在の往路/復路のステップ上限に達したか"""
        return self.steps_in_trip >= self.max_steps

    def turn_back(self) -> None:
        """
        目標点で折り返す（OUTBOUND → RETURNING）

        目標点を出発点に置き換え、ステップ数をリセットします。
        訪問済み集合はそのまま引き継ぎます。
        """
        self._expect(AntPhase.OUTBOUND)
        self.phase = AntPhase.RETURNING
        self.target = self.origin
        self.steps_in_trip = 0

    def finish(self) -> None:
        """出発点に戻って終了（RETURNING → FINISHED）"""
        self._expect(AntPhase.RETURNING)
        self.phase = AntPhase.FINISHED

    def get_stuck(self) -> None:
        """行き詰まり（OUTBOUND/RETURNING → STUCK）"""
        if not self.is_active():
            raise RuntimeError(f"Ant {self.ant_id} cannot get stuck in phase {self.phase}")
        self.phase = AntPhase.STUCK

    def _expect(self, phase: AntPhase) -> None:
        if self.phase is not phase:
            raise RuntimeError(
                f"Ant {self.ant_id} expected phase {phase.value}, is {self.phase.value}"
            )

    def __repr__(self) -> str:
        return (
            f"Ant(id={self.ant_id}, phase={self.phase.value}, pos={self.position}, "
            f"target={self.target}, path_len={len(self.path)})"
        )
