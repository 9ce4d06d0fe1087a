"""
設定モジュール

config.yaml の読み込み、既定値との統合、シミュレーション開始前の検証を行います。

設定は入れ子の辞書で、config["aco"]["evaporation_rate"] のように参照します。
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .exceptions import InvalidConfigurationError
from .modules.color_distance import COLOR_DISTANCES

LAYER_SIGNALS = ("trail", "gradient", "similarity")
DEPOSIT_MODES = ("fixed", "normalized")
DEGENERATE_POLICIES = ("uniform", "stuck")

DEFAULT_CONFIG: Dict[str, Any] = {
    "experiment": {
        "name": "moaco_segmentation",
        "seed": None,
        "image_path": None,
        "results_dir": "results",
    },
    "aco": {
        "parallelity": 1,
        "ants_per_generation": 40,
        "max_generations": 50,
        "generations_per_global_update": 5,
        "stagnation_window": 0,
        "soft_timeout": None,
        "max_ant_steps": None,
        "evaporation_rate": 0.1,
    },
    "selection": {
        "alpha": 1.0,
        "epsilon": 0.0,
        "revisit_damping": 0.01,
        "direction_offset": 3.0,
        "color_offset": 128.0,
        "pheromone_floor": 0.0001,
        "color_distance": "manhattan",
        "degenerate_policy": "uniform",
    },
    "pheromone": {
        "deposit_mode": "fixed",
        "layers": {
            "edge": {"signal": "gradient", "deposit_weight": 1.0},
            "connectivity": {"signal": "trail", "deposit_weight": 1.0},
            "deviation": {"signal": "similarity", "deposit_weight": 1.0},
        },
    },
    "global_update": {
        "edge_layer": "edge",
        "connectivity_layer": "connectivity",
        "edge_reinforcement": 0.5,
        "connectivity_decay": 0.5,
        "normalize": True,
    },
    "segmentation": {
        "boundary_layer": "edge",
        "boundary_threshold": 0.2,
    },
    "objectives": {
        "color_distance": "euclidean",
    },
    "pareto": {
        "max_size": 0,
        "reference_point": [0.0, 1.0e6, 1.0e6],
    },
    "output": {
        "visualize_generations": False,
        "save_graphs": True,
    },
}


def default_config() -> Dict[str, Any]:
    """既定の設定辞書（コピー）を返す"""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Dict[str, Any], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    設定辞書を再帰的に統合

    pheromone.layers は層の集合そのものを表すため、上書き側があれば丸ごと置き換えます。

    Args:
        base: 基準となる設定
        override: 上書きする設定（Noneなら base のコピーを返す）

    Returns:
        統合後の新しい設定辞書
    """
    merged = copy.deepcopy(base)
    if not override:
        return merged
    for key, value in override.items():
        if key == "layers":
            merged[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    設定ファイルを読み込み、既定値と統合する

    Args:
        config_path: 設定ファイル（YAML）のパス

    Returns:
        設定辞書
    """
    with open(config_path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    return merge_config(DEFAULT_CONFIG, loaded)


def resolve_max_ant_steps(config: Dict[str, Any], width: int, height: int) -> int:
    """
    1往路/復路あたりのステップ上限を決定

    未指定の場合は max(W*H // 8, 2*(W+H))
    """
    max_steps = config["aco"].get("max_ant_steps")
    if max_steps is None:
        return max((width * height) // 8, 2 * (width + height))
    return int(max_steps)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise InvalidConfigurationError(message)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any], width: int, height: int) -> None:
    """
    シミュレーション開始前に設定と画像サイズを検証

    Args:
        config: 設定辞書
        width: 画像の幅
        height: 画像の高さ

    Raises:
        InvalidConfigurationError: 不正な値が含まれる場合
    """
    # 【画像サイズ】アリが移動できるよう、少なくとも2画素が必要
    _require(
        width >= 1 and height >= 1 and width * height >= 2,
        f"Degenerate image dimensions: {width}x{height}",
    )

    try:
        experiment = config["experiment"]
        aco = config["aco"]
        selection = config["selection"]
        pheromone = config["pheromone"]
        global_update = config["global_update"]
        segmentation = config["segmentation"]
        objectives = config["objectives"]
        pareto = config["pareto"]
    except KeyError as e:
        raise InvalidConfigurationError(f"Missing configuration section: {e}") from None

    # 【実験】
    seed = experiment.get("seed")
    _require(
        seed is None or (isinstance(seed, int) and not isinstance(seed, bool)),
        f"experiment.seed must be null or an integer, got {seed!r}",
    )

    # 【ACOパラメータ】
    for key in (
        "parallelity",
        "ants_per_generation",
        "max_generations",
        "generations_per_global_update",
    ):
        value = aco.get(key)
        _require(
            isinstance(value, int) and not isinstance(value, bool) and value >= 1,
            f"aco.{key} must be a positive integer, got {value!r}",
        )
    stagnation = aco.get("stagnation_window", 0)
    _require(
        isinstance(stagnation, int) and not isinstance(stagnation, bool) and stagnation >= 0,
        f"aco.stagnation_window must be a non-negative integer, got {stagnation!r}",
    )
    timeout = aco.get("soft_timeout")
    _require(
        timeout is None or (_is_number(timeout) and timeout >= 0),
        f"aco.soft_timeout must be null or non-negative, got {timeout!r}",
    )
    max_steps = aco.get("max_ant_steps")
    _require(
        max_steps is None or (isinstance(max_steps, int) and max_steps >= 1),
        f"aco.max_ant_steps must be null or a positive integer, got {max_steps!r}",
    )
    rate = aco.get("evaporation_rate")
    _require(
        _is_number(rate) and 0.0 <= rate <= 1.0,
        f"aco.evaporation_rate must be in [0, 1], got {rate!r}",
    )

    # 【選択モデル】
    for key in ("alpha", "direction_offset", "color_offset", "pheromone_floor"):
        value = selection.get(key)
        _require(
            _is_number(value) and value >= 0,
            f"selection.{key} must be non-negative, got {value!r}",
        )
    for key in ("epsilon", "revisit_damping"):
        value = selection.get(key)
        _require(
            _is_number(value) and 0.0 <= value <= 1.0,
            f"selection.{key} must be in [0, 1], got {value!r}",
        )
    _require(
        selection.get("color_distance") in COLOR_DISTANCES,
        f"Unknown color distance: {selection.get('color_distance')!r}",
    )
    _require(
        selection.get("degenerate_policy") in DEGENERATE_POLICIES,
        f"Unknown degenerate selection policy: {selection.get('degenerate_policy')!r}",
    )

    # 【フェロモン層】
    layers = pheromone.get("layers") or {}
    _require(len(layers) > 0, "pheromone.layers must define at least one layer")
    _require(
        pheromone.get("deposit_mode") in DEPOSIT_MODES,
        f"Unknown deposit mode: {pheromone.get('deposit_mode')!r}",
    )
    for name, layer in layers.items():
        _require(isinstance(layer, dict), f"Layer {name!r} must be a mapping")
        _require(
            layer.get("signal") in LAYER_SIGNALS,
            f"Layer {name!r} has unknown signal {layer.get('signal')!r}",
        )
        weight = layer.get("deposit_weight")
        _require(
            _is_number(weight) and weight >= 0,
            f"Layer {name!r} deposit_weight must be non-negative, got {weight!r}",
        )
        layer_rate = layer.get("evaporation_rate")
        _require(
            layer_rate is None or (_is_number(layer_rate) and 0.0 <= layer_rate <= 1.0),
            f"Layer {name!r} evaporation_rate must be in [0, 1], got {layer_rate!r}",
        )

    # 【大域更新・セグメント抽出】
    for key in ("edge_layer", "connectivity_layer"):
        _require(
            global_update.get(key) in layers,
            f"global_update.{key} {global_update.get(key)!r} is not a configured layer",
        )
    for key in ("edge_reinforcement", "connectivity_decay"):
        value = global_update.get(key)
        _require(
            _is_number(value) and 0.0 <= value <= 1.0,
            f"global_update.{key} must be in [0, 1], got {value!r}",
        )
    _require(
        segmentation.get("boundary_layer") in layers,
        f"segmentation.boundary_layer {segmentation.get('boundary_layer')!r} "
        "is not a configured layer",
    )
    threshold = segmentation.get("boundary_threshold")
    _require(
        _is_number(threshold) and 0.0 <= threshold < 1.0,
        f"segmentation.boundary_threshold must be in [0, 1), got {threshold!r}",
    )
    _require(
        objectives.get("color_distance") in COLOR_DISTANCES,
        f"Unknown color distance: {objectives.get('color_distance')!r}",
    )

    # 【パレートアーカイブ】
    max_size = pareto.get("max_size", 0)
    _require(
        isinstance(max_size, int) and max_size >= 0,
        f"pareto.max_size must be a non-negative integer, got {max_size!r}",
    )
