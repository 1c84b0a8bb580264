# src/carbonledger/ledger/constants.py
from __future__ import annotations

"""Engine constants and parameter defaults.

Amounts are integers in ledger-native base units. Every stored amount must fit
an unsigned 256-bit word, so arithmetic that would leave that range is
rejected instead of wrapping.
"""

MAX_UINT256: int = 2**256 - 1

# Fees are expressed in basis points (1/10000).
BPS_DENOMINATOR: int = 10_000

DEFAULT_FEE_BPS: int = 100  # 1%
DEFAULT_TRANSFER_FEE: int = 1_000
DEFAULT_MIN_VOTES_FOR_PROPOSAL: int = 10
DEFAULT_ALLOW_NON_ADMIN_REGISTRATION: bool = False

# Badge tiers, highest first. The default tier applies below every threshold.
BADGE_CHAMPION: str = "Champion"
BADGE_CONTRIBUTOR: str = "Contributor"
BADGE_DEFAULT: str = "Novice"

BADGE_TIERS = (BADGE_CHAMPION, BADGE_CONTRIBUTOR)

DEFAULT_BADGE_THRESHOLDS = {
    BADGE_CONTRIBUTOR: 100,
    BADGE_CHAMPION: 500,
}

# Native-value account that holds attached value while a call settles.
ENGINE_ACCOUNT_ID: str = "ENGINE"

# Transaction log action kinds.
ACTION_PURCHASE: str = "purchase"
ACTION_RETIRE: str = "retire"
ACTION_TRANSFER: str = "transfer"
