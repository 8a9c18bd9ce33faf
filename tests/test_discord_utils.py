from types import SimpleNamespace
from unittest.mock import AsyncMock

import discord
import pytest

from patrolcord.util.discord_utils import fetch_app_member, fetch_member_or_none, resolve_guild

from role_persist_fakes import FakeBot, FakeGuild, http_error


@pytest.mark.asyncio
async def test_resolve_guild_prefers_cache_then_fetch() -> None:
    guild = FakeGuild(1)
    assert await resolve_guild(FakeBot(guild), 1) is guild

    fetched = object()
    bot = SimpleNamespace(get_guild=lambda _id: None, fetch_guild=AsyncMock(return_value=fetched))
    assert await resolve_guild(bot, 2) is fetched  # type: ignore[arg-type]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [http_error(discord.Forbidden, 403), http_error(discord.HTTPException, 502)])
async def test_resolve_guild_returns_none_on_api_errors(error) -> None:
    bot = SimpleNamespace(get_guild=lambda _id: None, fetch_guild=AsyncMock(side_effect=error))

    assert await resolve_guild(bot, 2) is None  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_fetch_member_or_none() -> None:
    guild = FakeGuild(1)
    member = guild.add_member(5)

    assert await fetch_member_or_none(guild, 5) is member  # type: ignore[arg-type]
    assert await fetch_member_or_none(guild, 6) is None  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_fetch_member_propagates_other_errors() -> None:
    guild = SimpleNamespace(get_member=lambda _id: None, fetch_member=AsyncMock(side_effect=http_error()))

    with pytest.raises(discord.HTTPException):
        await fetch_member_or_none(guild, 6)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_fetch_app_member_falls_back_to_bot_user() -> None:
    guild = FakeGuild(1)
    bot_member = guild.add_member(999)

    assert await fetch_app_member(guild, FakeBot(guild)) is bot_member  # type: ignore[arg-type]

    me = guild.add_bot()
    assert await fetch_app_member(guild, FakeBot(guild)) is me  # type: ignore[arg-type]
