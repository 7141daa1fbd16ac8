"""
Configuration for order extraction matching.

Handles matcher thresholds and supplier name aliases.
Config is declarative JSON - edit the file, not the code.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from nursery.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "match_config.json"


@dataclass
class MatchSettings:
    """
    Settings for the variety matching passes.

    The defaults are empirically tuned; the review queue volume depends on
    them, so change them deliberately.
    """
    word_overlap_threshold: float = 0.5
    min_word_length: int = 2  # words must be longer than this to count


@dataclass
class MatchConfig:
    """Full configuration for extraction matching."""
    settings: MatchSettings = field(default_factory=MatchSettings)
    supplier_aliases: dict[str, list[str]] = field(default_factory=dict)

    # Reverse lookup: alias (lowercase) -> supplier catalog name (built on load)
    _supplier_lookup: dict[str, str] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self._build_supplier_lookup()

    def _build_supplier_lookup(self):
        """Map every alias and the canonical name itself to the canonical name."""
        self._supplier_lookup = {}
        for supplier_name, aliases in self.supplier_aliases.items():
            self._supplier_lookup[supplier_name.lower()] = supplier_name
            for alias in aliases:
                self._supplier_lookup[alias.lower()] = supplier_name


def load_config(config_path: Optional[str | Path] = None) -> MatchConfig:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to match_config.json (default: NURSERY_MATCH_CONFIG,
            falling back to the file shipped with this package)

    Returns:
        MatchConfig with settings and supplier aliases
    """
    path = Path(config_path or get_settings().MATCH_CONFIG_PATH)
    with open(path, "r") as f:
        data = json.load(f)

    settings_data = data.get("settings", {})
    settings = MatchSettings(
        word_overlap_threshold=float(settings_data.get("word_overlap_threshold", 0.5)),
        min_word_length=int(settings_data.get("min_word_length", 2)),
    )

    config = MatchConfig(
        settings=settings,
        supplier_aliases=data.get("supplier_aliases", {}),
    )
    logger.debug("Loaded match config from %s", path)
    return config


def resolve_supplier_alias(raw_name: Optional[str], config: Optional[MatchConfig]) -> Optional[str]:
    """
    Map a supplier name as printed on an order to its catalog name.

    Args:
        raw_name: Supplier name from the extraction (e.g., "Kernock Park Plants Ltd")
        config: Loaded configuration with supplier_aliases

    Returns:
        Catalog supplier name (e.g., "Kernock Plants") or None if not aliased
    """
    if not raw_name or config is None:
        return None
    return config._supplier_lookup.get(raw_name.strip().lower())
