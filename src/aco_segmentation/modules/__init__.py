from .color_distance import COLOR_DISTANCES, get_color_distance
from .evaluator import ObjectiveEvaluator, ObjectiveVector
from .pheromone import (
    DepositBuffer,
    GlobalPheromoneUpdater,
    PheromoneEvaporator,
    PheromoneUpdater,
    apply_local_rule,
)
from .segmentation import SegmentExtractor, SegmentMap
from .selection import SelectionModel

__all__ = [
    "COLOR_DISTANCES",
    "get_color_distance",
    "ObjectiveEvaluator",
    "ObjectiveVector",
    "DepositBuffer",
    "PheromoneEvaporator",
    "PheromoneUpdater",
    "GlobalPheromoneUpdater",
    "apply_local_rule",
    "SegmentExtractor",
    "SegmentMap",
    "SelectionModel",
]
