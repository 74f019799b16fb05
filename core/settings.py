"""Tunable constants for the planning engine and their config.json overrides."""

from __future__ import annotations

from typing import Dict, Optional


DEFAULTS = {
    # cadences (ticks)
    "planning_cadence": 100,
    "construction_cadence": 15,
    "replacement_cadence": 250,
    "traffic_decay_cadence": 100,
    "stale_plan_factor": 10,
    # construction budget
    "max_construction_sites": 4,
    "road_site_budget": None,
    # terrain
    "layout_analysis_ttl": 5000,
    "use_dynamic_placement": True,
    "min_spawn_access": 4,
    # roads
    "min_traffic_for_road": 5,
    "high_priority_cutoff": 80,
    "rebuild_priority_threshold": 50,
    "max_exit_paths": 4,
    "max_path_ops": 2000,
    # traffic
    "traffic_analysis_enabled": True,
    "min_traffic_data_points": 20,
    "traffic_decay_factor": 0.9,
    "traffic_prune_below": 0.5,
    "traffic_data_ttl": 1500,
    "traffic_sample_limit": 25,
    # persistence
    "cache_dir": None,
}


def _parse_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_float(value, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def load_settings(config: Optional[Dict] = None) -> Dict[str, object]:
    """Merge the "planning" section of ``config`` over DEFAULTS and coerce types."""
    config = config or {}
    merged = dict(DEFAULTS)
    merged.update(config.get("planning", {}) or {})

    for key in (
        "planning_cadence",
        "construction_cadence",
        "replacement_cadence",
        "traffic_decay_cadence",
    ):
        merged[key] = max(1, _parse_int(merged.get(key), DEFAULTS[key]))

    for key in (
        "stale_plan_factor",
        "max_construction_sites",
        "layout_analysis_ttl",
        "min_spawn_access",
        "min_traffic_for_road",
        "high_priority_cutoff",
        "rebuild_priority_threshold",
        "max_exit_paths",
        "max_path_ops",
        "min_traffic_data_points",
        "traffic_data_ttl",
        "traffic_sample_limit",
    ):
        merged[key] = max(0, _parse_int(merged.get(key), DEFAULTS[key]))

    # roads get half the site budget unless configured explicitly
    if merged.get("road_site_budget") is None:
        merged["road_site_budget"] = max(1, merged["max_construction_sites"] // 2)
    else:
        merged["road_site_budget"] = max(0, _parse_int(merged["road_site_budget"], 1))

    merged["traffic_decay_factor"] = min(
        1.0, max(0.0, _parse_float(merged.get("traffic_decay_factor"), 0.9))
    )
    merged["traffic_prune_below"] = max(0.0, _parse_float(merged.get("traffic_prune_below"), 0.5))
    merged["use_dynamic_placement"] = bool(merged.get("use_dynamic_placement", True))
    merged["traffic_analysis_enabled"] = bool(merged.get("traffic_analysis_enabled", True))
    if merged.get("cache_dir") is not None:
        merged["cache_dir"] = str(merged["cache_dir"])
    return merged


__all__ = ["DEFAULTS", "load_settings"]
