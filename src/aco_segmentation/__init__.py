"""
ACO Multi-Objective Segmentation Package

多目的ACOによる教師なし画像セグメンテーションパッケージ
"""

__version__ = "1.0.0"

from .algorithms.aco_solver import ACOSolver, select_solution
from .algorithms.pareto_archive import ParetoArchive, ParetoSolution
from .config import load_config, validate_config
from .core.ant import Ant, AntPhase
from .core.image import ImageGrid
from .core.pheromone_field import PheromoneField
from .exceptions import (
    EmptyParetoFrontError,
    InvalidConfigurationError,
    SegmentationError,
)
from .modules.evaluator import ObjectiveEvaluator, ObjectiveVector
from .modules.pheromone import PheromoneEvaporator, PheromoneUpdater
from .modules.segmentation import SegmentExtractor, SegmentMap
from .utils.metrics import MetricsCalculator
from .utils.visualization import Visualizer

__all__ = [
    "ACOSolver",
    "select_solution",
    "ParetoArchive",
    "ParetoSolution",
    "load_config",
    "validate_config",
    "Ant",
    "AntPhase",
    "ImageGrid",
    "PheromoneField",
    "SegmentationError",
    "InvalidConfigurationError",
    "EmptyParetoFrontError",
    "ObjectiveEvaluator",
    "ObjectiveVector",
    "PheromoneUpdater",
    "PheromoneEvaporator",
    "SegmentExtractor",
    "SegmentMap",
    "MetricsCalculator",
    "Visualizer",
]
