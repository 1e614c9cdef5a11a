from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from ..errors import InvalidRecord


class Slot(str, Enum):
    FLOWER = "flower"
    PLUME = "plume"
    SANDS = "sands"
    GOBLET = "goblet"
    CIRCLET = "circlet"


SLOT_DISPLAY_NAMES: Dict[str, Slot] = {
    "Flower of Life": Slot.FLOWER,
    "Plume of Death": Slot.PLUME,
    "Sands of Eon": Slot.SANDS,
    "Goblet of Eonothem": Slot.GOBLET,
    "Circlet of Logos": Slot.CIRCLET,
}


class StatKey(str, Enum):
    HP = "hp"
    HP_PERCENT = "hp_"
    ATK = "atk"
    ATK_PERCENT = "atk_"
    DEF = "def"
    DEF_PERCENT = "def_"
    ELEMENTAL_MASTERY = "eleMas"
    ENERGY_RECHARGE = "enerRech_"
    CRIT_RATE = "critRate_"
    CRIT_DMG = "critDMG_"
    HEALING_BONUS = "heal_"
    PHYSICAL_DMG = "physical_dmg_"
    ANEMO_DMG = "anemo_dmg_"
    GEO_DMG = "geo_dmg_"
    ELECTRO_DMG = "electro_dmg_"
    DENDRO_DMG = "dendro_dmg_"
    HYDRO_DMG = "hydro_dmg_"
    PYRO_DMG = "pyro_dmg_"
    CRYO_DMG = "cryo_dmg_"

    @property
    def is_percent(self) -> bool:
        return self.value.endswith("_")


# Display name -> (flat key, percent key). One side is None when the stat only
# exists in one form.
STAT_DISPLAY_NAMES: Dict[str, Tuple[Optional[StatKey], Optional[StatKey]]] = {
    "HP": (StatKey.HP, StatKey.HP_PERCENT),
    "ATK": (StatKey.ATK, StatKey.ATK_PERCENT),
    "DEF": (StatKey.DEF, StatKey.DEF_PERCENT),
    "Elemental Mastery": (StatKey.ELEMENTAL_MASTERY, None),
    "Energy Recharge": (None, StatKey.ENERGY_RECHARGE),
    "CRIT Rate": (None, StatKey.CRIT_RATE),
    "CRIT DMG": (None, StatKey.CRIT_DMG),
    "Healing Bonus": (None, StatKey.HEALING_BONUS),
    "Physical DMG Bonus": (None, StatKey.PHYSICAL_DMG),
    "Anemo DMG Bonus": (None, StatKey.ANEMO_DMG),
    "Geo DMG Bonus": (None, StatKey.GEO_DMG),
    "Electro DMG Bonus": (None, StatKey.ELECTRO_DMG),
    "Dendro DMG Bonus": (None, StatKey.DENDRO_DMG),
    "Hydro DMG Bonus": (None, StatKey.HYDRO_DMG),
    "Pyro DMG Bonus": (None, StatKey.PYRO_DMG),
    "Cryo DMG Bonus": (None, StatKey.CRYO_DMG),
}

# Upper bound of any value a stat can show (main stat at +20 or a fully rolled
# sub-stat, whichever is larger).
STAT_VALUE_LIMITS: Dict[StatKey, float] = {
    StatKey.HP: 4780.0,
    StatKey.HP_PERCENT: 46.6,
    StatKey.ATK: 311.0,
    StatKey.ATK_PERCENT: 46.6,
    StatKey.DEF: 139.0,
    StatKey.DEF_PERCENT: 58.3,
    StatKey.ELEMENTAL_MASTERY: 187.0,
    StatKey.ENERGY_RECHARGE: 51.8,
    StatKey.CRIT_RATE: 31.1,
    StatKey.CRIT_DMG: 62.2,
    StatKey.HEALING_BONUS: 35.9,
    StatKey.PHYSICAL_DMG: 58.3,
    StatKey.ANEMO_DMG: 46.6,
    StatKey.GEO_DMG: 46.6,
    StatKey.ELECTRO_DMG: 46.6,
    StatKey.DENDRO_DMG: 46.6,
    StatKey.HYDRO_DMG: 46.6,
    StatKey.PYRO_DMG: 46.6,
    StatKey.CRYO_DMG: 46.6,
}

MAX_LEVEL_BY_RARITY: Dict[int, int] = {1: 4, 2: 4, 3: 12, 4: 16, 5: 20}
MAX_SUB_STATS = 4


def resolve_stat_key(display_name: str, is_percent: bool) -> Optional[StatKey]:
    """
    Map an exact in-game stat label plus the value's % flag to a stat key.
    Returns None for unknown labels or a label/unit combination that cannot exist.
    """
    pair = STAT_DISPLAY_NAMES.get(display_name)
    if pair is None:
        return None
    flat, percent = pair
    return percent if is_percent else flat


@dataclass(frozen=True)
class StatValue:
    key: StatKey
    value: float

    @property
    def is_percent(self) -> bool:
        return self.key.is_percent

    def __str__(self) -> str:
        suffix = "%" if self.is_percent else ""
        value = f"{self.value:.1f}" if self.is_percent else f"{self.value:g}"
        return f"{self.key.value}={value}{suffix}"


Fingerprint = Tuple[str, Slot, int, int, StatValue, FrozenSet[StatValue]]


@dataclass(frozen=True)
class ArtifactRecord:
    """
    One validated artifact as read from the detail panel.
    """

    set_name: str
    slot: Slot
    rarity: int
    level: int
    main_stat: StatValue
    sub_stats: Tuple[StatValue, ...] = field(default_factory=tuple)
    locked: Optional[bool] = None
    equipped_by: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.set_name:
            raise InvalidRecord("set name is empty")
        if self.rarity not in MAX_LEVEL_BY_RARITY:
            raise InvalidRecord(f"rarity {self.rarity} outside 1-5")
        max_level = MAX_LEVEL_BY_RARITY[self.rarity]
        if not 0 <= self.level <= max_level:
            raise InvalidRecord(
                f"level {self.level} outside 0-{max_level} for rarity {self.rarity}"
            )
        if len(self.sub_stats) > MAX_SUB_STATS:
            raise InvalidRecord(f"{len(self.sub_stats)} sub-stats (max {MAX_SUB_STATS})")
        sub_keys = [stat.key for stat in self.sub_stats]
        if len(set(sub_keys)) != len(sub_keys):
            raise InvalidRecord(f"duplicate sub-stat in {sub_keys}")
        if self.main_stat.key in sub_keys:
            raise InvalidRecord(f"sub-stat repeats main stat {self.main_stat.key.value}")

    def fingerprint(self) -> Fingerprint:
        return (
            self.set_name,
            self.slot,
            self.rarity,
            self.level,
            self.main_stat,
            frozenset(self.sub_stats),
        )

    def label(self) -> str:
        return (
            f"{self.rarity}* {self.set_name} {self.slot.value} +{self.level} "
            f"{self.main_stat}"
        )
