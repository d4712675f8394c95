"""Load, validate, and hot-reload the solid-health sync configuration.

The config lives in ``sync_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_sync_config()`` to re-read from
disk after an edit.

Usage::

    from solid_health.fitness.config_loader import get_sync_config

    config = get_sync_config()
    config.reconciliation.upload_batch_size     # 50
    config.coding(Category.STEPS).code          # "55423-8"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from solid_health.fitness.base import Category

logger = logging.getLogger("solidhealth.fitness.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "sync_config.yaml"

_LITERAL_TYPES = ("integer", "decimal")


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class ReconciliationConfig:
    """Diffing and upload parameters."""

    modify_tolerance: float
    heart_rate_collapse_seconds: int
    heart_rate_collapse_delta: float
    upload_batch_size: int
    backfill_max_months: int


@dataclass
class BootstrapConfig:
    """Defaults used when the type index has no Observation registration."""

    container_path: str
    container_slug: str
    container_title: str
    observation_file: str
    registration_fragment: str


@dataclass
class CategoryCoding:
    """Clinical coding and unit of one measurement category.

    Attributes:
        category:     The category this coding belongs to.
        code:         LOINC code (e.g. '8867-4').
        display:      Human-readable code display text.
        unit:         Quantity unit label.
        unit_code:    UCUM unit code.
        literal_type: 'integer' or 'decimal' for the stored value.
    """

    category: Category
    code: str
    display: str
    unit: str
    unit_code: str
    literal_type: str


@dataclass
class SyncConfig:
    """Complete, validated sync configuration.

    Attributes:
        version:        Config schema version string.
        reconciliation: Diffing and upload parameters.
        bootstrap:      Type index bootstrap defaults.
        categories:     Category → clinical coding.
    """

    version: str
    reconciliation: ReconciliationConfig
    bootstrap: BootstrapConfig
    categories: dict[Category, CategoryCoding]
    _raw: dict = field(default_factory=dict, repr=False)

    def coding(self, category: Category) -> CategoryCoding:
        return self.categories[category]

    def category_for_code(self, code: str) -> Category | None:
        """Return the category whose clinical code matches, or None."""
        for coding in self.categories.values():
            if coding.code == code:
                return coding.category
        return None


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when sync_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sync config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> SyncConfig:
    """Validate the raw YAML dict and construct a SyncConfig.

    Applies defaults for optional fields and collects every problem before
    raising.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, default: Any, cast: type) -> Any:
        value = section.get(key, default)
        try:
            return cast(value)
        except (TypeError, ValueError):
            errors.append(f"{key} must be a number, got {value!r}")
            return default

    version = str(raw.get("version", "1.0"))

    # ── Reconciliation ──
    rc_raw = raw.get("reconciliation", {}) or {}
    reconciliation = ReconciliationConfig(
        modify_tolerance=_number(rc_raw, "modify_tolerance", 0.01, float),
        heart_rate_collapse_seconds=_number(rc_raw, "heart_rate_collapse_seconds", 60, int),
        heart_rate_collapse_delta=_number(rc_raw, "heart_rate_collapse_delta", 1.0, float),
        upload_batch_size=_number(rc_raw, "upload_batch_size", 50, int),
        backfill_max_months=_number(rc_raw, "backfill_max_months", 120, int),
    )
    if reconciliation.upload_batch_size < 1:
        errors.append("reconciliation.upload_batch_size must be at least 1")
    if reconciliation.backfill_max_months < 1:
        errors.append("reconciliation.backfill_max_months must be at least 1")
    if reconciliation.modify_tolerance < 0:
        errors.append("reconciliation.modify_tolerance must not be negative")

    # ── Bootstrap ──
    bs_raw = raw.get("bootstrap", {}) or {}
    bootstrap = BootstrapConfig(
        container_path=str(bs_raw.get("container_path", "/private/health/")),
        container_slug=str(bs_raw.get("container_slug", "health")),
        container_title=str(bs_raw.get("container_title", "FHIR Health Observations")),
        observation_file=str(bs_raw.get("observation_file", "fitness.ttl")),
        registration_fragment=str(bs_raw.get("registration_fragment", "FHIRObservation")),
    )
    if not bootstrap.container_path.endswith("/"):
        errors.append("bootstrap.container_path must end with '/'")

    # ── Categories ──
    cat_raw = raw.get("categories", {}) or {}
    categories: dict[Category, CategoryCoding] = {}
    for category in Category:
        cfg = cat_raw.get(category.value)
        if not isinstance(cfg, dict):
            errors.append(f"categories.{category.value} is missing or not a mapping")
            continue
        missing = [k for k in ("code", "display", "unit", "unit_code") if k not in cfg]
        if missing:
            errors.append(f"categories.{category.value} is missing {', '.join(missing)}")
            continue
        literal_type = cfg.get("literal_type", "decimal")
        if literal_type not in _LITERAL_TYPES:
            errors.append(
                f"categories.{category.value}.literal_type must be one of "
                f"{_LITERAL_TYPES}, got {literal_type!r}"
            )
        categories[category] = CategoryCoding(
            category=category,
            code=str(cfg["code"]),
            display=str(cfg["display"]),
            unit=str(cfg["unit"]),
            unit_code=str(cfg["unit_code"]),
            literal_type=literal_type,
        )

    codes = [c.code for c in categories.values()]
    if len(codes) != len(set(codes)):
        errors.append("category codes must be unique")

    if errors:
        raise ConfigValidationError(
            f"sync_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return SyncConfig(
        version=version,
        reconciliation=reconciliation,
        bootstrap=bootstrap,
        categories=categories,
        _raw=raw,
    )


def load_sync_config(path: Path | None = None) -> SyncConfig:
    """Load and validate the sync config from disk.

    Args:
        path: Override path to YAML. Uses the bundled sync_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded sync config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: SyncConfig | None = None
_config_lock = threading.Lock()


def get_sync_config() -> SyncConfig:
    """Return the global SyncConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_sync_config()
    return _config


def reload_sync_config(path: Path | None = None) -> SyncConfig:
    """Reload the sync config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is
    re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_sync_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded sync config: %s → %s", old_version, new_config.version)
    return new_config
