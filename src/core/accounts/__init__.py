"""
Accounts

Partner tiers, account provisioning, the partner/admin directories and
profile settings.
"""

from .tiers import (
    OrganizationForm,
    OrganizationType,
    Tier,
    TierDefaults,
    TIER_DEFAULTS,
    TIER_ORDER,
    tier_rank,
)
from .provisioning import (
    AccountRequest,
    AccountType,
    ProvisioningClient,
    get_provisioning_client,
    set_provisioning_client,
)
from .directory import (
    DirectoryService,
    PartnerFilter,
)
from .profile import (
    ProfileKind,
    ProfileService,
    ProfileUpdate,
)

__all__ = [
    "OrganizationForm",
    "OrganizationType",
    "Tier",
    "TierDefaults",
    "TIER_DEFAULTS",
    "TIER_ORDER",
    "tier_rank",
    "AccountRequest",
    "AccountType",
    "ProvisioningClient",
    "get_provisioning_client",
    "set_provisioning_client",
    "DirectoryService",
    "PartnerFilter",
    "ProfileKind",
    "ProfileService",
    "ProfileUpdate",
]
