"""Video-conferencing token issuance."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol

from .security import sign_value, verify_signature


class VideoTokenProvider(Protocol):
    async def get_token_for_town(self, town_id: str, player_id: str) -> str:
        """Issue a token that lets player_id join the call for town_id."""


@dataclass
class SignedVideoTokenProvider:
    """Issues `town.player.expiry.signature` tokens signed with a shared secret."""

    secret: str
    ttl_s: int = 3600

    async def get_token_for_town(self, town_id: str, player_id: str) -> str:
        expires_at = int(time.time()) + self.ttl_s
        claims = f"{town_id}.{player_id}.{expires_at}"
        return f"{claims}.{sign_value(claims, self.secret)}"

    def verify(self, token: str, town_id: str, player_id: str) -> bool:
        claims, _, signature = token.rpartition(".")
        if not claims or not verify_signature(claims, signature, self.secret):
            return False
        token_town, _, rest = claims.partition(".")
        token_player, _, expires_raw = rest.rpartition(".")
        if token_town != town_id or token_player != player_id:
            return False
        try:
            return int(expires_raw) > int(time.time())
        except ValueError:
            return False
