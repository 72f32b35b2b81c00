"""Engine configuration loading and validation utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List
import copy

import yaml

from .classifier import Regime


REQUIRED_SECTIONS = ["carbon_prices", "tolerance_bands", "fiscal_year"]


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base; lists are replaced, not merged."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return an object (empty dict for empty files)."""
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_profile_config(profile_id: str, config_dir: Path) -> dict:
    """Load base configuration and merge the profile override if present."""
    base = load_yaml_file(config_dir / "base.yaml")
    if profile_id == "base":
        return base

    override_path = config_dir / f"{profile_id}.yaml"
    if override_path.exists():
        return deep_merge(base, load_yaml_file(override_path))
    return base


def validate_config(config: Dict) -> List[str]:
    """
    Validate configuration structure and numeric ranges.

    Returns a list of messages; an empty list means the configuration is usable.
    """
    errors: List[str] = []

    for section in REQUIRED_SECTIONS:
        if section not in config:
            errors.append(f"Missing required section: {section}")

    for name, price in config.get("carbon_prices", {}).items():
        try:
            if float(price) < 0:
                errors.append(f"carbon price {name} must be >= 0: {price}")
        except (TypeError, ValueError):
            errors.append(f"carbon price {name} is not numeric: {price!r}")
    if "carbon_prices" in config and "projection" not in config["carbon_prices"]:
        errors.append("Missing carbon price: projection")

    known_regimes = {r.value for r in Regime}
    for regime, band in config.get("tolerance_bands", {}).items():
        if regime not in known_regimes:
            errors.append(f"Unknown tolerance band regime: {regime}")
            continue
        try:
            band = float(band)
        except (TypeError, ValueError):
            errors.append(f"tolerance band {regime} is not numeric: {band!r}")
            continue
        if band < 0 or band > 1:
            errors.append(f"tolerance band out of range for {regime}: {band} (must be in [0, 1])")

    start_month = config.get("fiscal_year", {}).get("start_month", 4)
    if not isinstance(start_month, int) or start_month < 1 or start_month > 12:
        errors.append(f"fiscal_year.start_month invalid: {start_month}")

    amplitude = config.get("proration", {}).get("variation_amplitude", 0.0)
    try:
        if float(amplitude) < 0 or float(amplitude) >= 1:
            errors.append(f"proration.variation_amplitude out of range: {amplitude}")
    except (TypeError, ValueError):
        errors.append(f"proration.variation_amplitude is not numeric: {amplitude!r}")

    return errors
