from coveytown.backend.video import SignedVideoTokenProvider


async def test_signed_token_verifies_for_its_town_and_player() -> None:
    provider = SignedVideoTokenProvider(secret="video-secret", ttl_s=60)

    token = await provider.get_token_for_town("town-1", "player-1")

    assert provider.verify(token, "town-1", "player-1") is True
    assert provider.verify(token, "town-2", "player-1") is False
    assert provider.verify(token, "town-1", "player-2") is False


async def test_signed_token_rejects_tampering_and_other_secrets() -> None:
    provider = SignedVideoTokenProvider(secret="video-secret", ttl_s=60)
    token = await provider.get_token_for_town("town-1", "player-1")

    assert SignedVideoTokenProvider(secret="other").verify(token, "town-1", "player-1") is False
    assert provider.verify(token[:-1] + ("0" if token[-1] != "0" else "1"), "town-1", "player-1") is False
    assert provider.verify("garbage", "town-1", "player-1") is False


async def test_expired_token_is_rejected() -> None:
    provider = SignedVideoTokenProvider(secret="video-secret", ttl_s=-1)
    token = await provider.get_token_for_town("town-1", "player-1")

    assert provider.verify(token, "town-1", "player-1") is False
