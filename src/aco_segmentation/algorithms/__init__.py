from .aco_solver import ACOSolver, SimulationState, select_solution
from .colony import AntResult, ColonyExecutor, GenerationOutcome, spawn_ant, walk_ant
from .pareto_archive import ParetoArchive, ParetoSolution, weighted_sum

__all__ = [
    "ACOSolver",
    "SimulationState",
    "select_solution",
    "AntResult",
    "ColonyExecutor",
    "GenerationOutcome",
    "spawn_ant",
    "walk_ant",
    "ParetoArchive",
    "ParetoSolution",
    "weighted_sum",
]
