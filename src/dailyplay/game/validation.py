"""Input checks shared by the status, submission and referral paths."""

from __future__ import annotations

import re

from dailyplay.game.errors import InvalidScoreError, InvalidWalletError

WALLET_PATTERN = r"^[A-Za-z0-9]{8,128}$"
_WALLET_RE = re.compile(WALLET_PATTERN)


def validate_wallet_address(wallet_address: str) -> str:
    """Reject empty or malformed wallet identifiers before touching state."""
    if not isinstance(wallet_address, str) or not _WALLET_RE.match(wallet_address):
        raise InvalidWalletError("Invalid wallet address")
    return wallet_address


def validate_score(score: int) -> int:
    if isinstance(score, bool) or not isinstance(score, int) or score < 0:
        raise InvalidScoreError("Score must be a non-negative integer")
    return score
