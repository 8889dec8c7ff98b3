"""
Partner tiers, organization types and the organization form pre-fill.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Tier(str, Enum):
    """Partner tiers, strictly ordered bronze < silver < gold < platinum."""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"

    @property
    def rank(self) -> int:
        return TIER_ORDER[self]

    def __lt__(self, other):
        if isinstance(other, Tier):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, Tier):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, Tier):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, Tier):
            return self.rank >= other.rank
        return NotImplemented


TIER_ORDER: Dict[Tier, int] = {
    Tier.BRONZE: 1,
    Tier.SILVER: 2,
    Tier.GOLD: 3,
    Tier.PLATINUM: 4,
}


def tier_rank(value: Optional[str]) -> int:
    """Sort key for a stored tier; unknown or missing tiers sort first."""
    try:
        return Tier(value).rank
    except ValueError:
        return 0


class OrganizationType(str, Enum):
    RESELLER = "reseller"
    REFERRAL = "referral"
    FULL_CYCLE = "full_cycle"
    WHITE_LABEL = "white_label"


@dataclass(frozen=True)
class TierDefaults:
    discount_percentage: int
    mdf_allocation: int


TIER_DEFAULTS: Dict[Tier, TierDefaults] = {
    Tier.BRONZE: TierDefaults(discount_percentage=5, mdf_allocation=5000),
    Tier.SILVER: TierDefaults(discount_percentage=10, mdf_allocation=10000),
    Tier.GOLD: TierDefaults(discount_percentage=15, mdf_allocation=25000),
    Tier.PLATINUM: TierDefaults(discount_percentage=20, mdf_allocation=50000),
}


@dataclass
class OrganizationForm:
    """
    Organization fields on the provisioning form.

    Tier defaults are a pre-fill only: choosing a different tier overwrites
    discount and MDF, re-choosing the current tier keeps manual edits.
    """
    name: str = ""
    type: OrganizationType = OrganizationType.RESELLER
    tier: Optional[Tier] = None
    discount_percentage: int = 0
    mdf_allocation: int = 0

    def select_tier(self, tier: Tier) -> None:
        tier = Tier(tier)
        if tier == self.tier:
            return
        self.tier = tier
        defaults = TIER_DEFAULTS[tier]
        self.discount_percentage = defaults.discount_percentage
        self.mdf_allocation = defaults.mdf_allocation

    def to_payload(self) -> Dict[str, object]:
        return {
            "name": self.name.strip(),
            "type": OrganizationType(self.type).value,
            "tier": (self.tier or Tier.BRONZE).value,
            "discount_percentage": int(self.discount_percentage),
            "mdf_allocation": int(self.mdf_allocation),
        }
