"""Shared loot constants and environment-driven settings."""
import os
from typing import Any, Dict, Optional, Tuple

# Rarity classes; index 0 is the fallback and is never looked up in a table.
NUM_CLASSES = 6
COMMON = 0
CLASS_NAMES = ("common", "uncommon", "rare", "epic", "legendary", "mythic")

# Probability granularities a table may be expressed against
BASIS_POINTS = 10_000
PERCENT = 100
GRANULARITIES = (BASIS_POINTS, PERCENT)

PAYMENT_MODES = ("paid", "admin")

ADMIN_SCOPE = "loot:admin"


def _option_ids(raw: Optional[str]) -> Optional[Tuple[int, ...]]:
    if not raw:
        return None
    return tuple(sorted({int(p) for p in raw.split(",") if p.strip()}))


def load_settings(environ=None) -> Dict[str, Any]:
    """Read LOOT_* settings from the environment with their defaults."""
    env = os.environ if environ is None else environ
    total = int(env.get("LOOT_PROBABILITY_TOTAL", BASIS_POINTS))
    if total not in GRANULARITIES:
        raise RuntimeError(f"LOOT_PROBABILITY_TOTAL must be one of {GRANULARITIES}, got {total}")
    mode = env.get("LOOT_PAYMENT_MODE", "paid")
    if mode not in PAYMENT_MODES:
        raise RuntimeError(f"LOOT_PAYMENT_MODE must be one of {PAYMENT_MODES}, got {mode!r}")
    return {
        "LOOT_PROBABILITY_TOTAL": total,
        "LOOT_PAYMENT_MODE": mode,
        "LOOT_RANDOM_SOURCE": env.get("LOOT_RANDOM_SOURCE", "secure"),
        "LOOT_POOL_OWNER": env.get("LOOT_POOL_OWNER", "treasury"),
        "LOOT_OPERATOR": env.get("LOOT_OPERATOR", "lootlots"),
        "LOOT_OPTION_IDS": _option_ids(env.get("LOOT_OPTION_IDS")),
    }
