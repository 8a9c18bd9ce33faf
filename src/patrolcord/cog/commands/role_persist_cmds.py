"""
Role persistence commands cog.

Exposes the ``/role-persist`` slash command group:
- add:    pin 1-6 roles to a member, optionally until an expiry
- remove: delete a record and strip its roles unless another record keeps them
- list:   show the active records of the server or of one member

All subcommands require the Manage Roles permission.
"""

import re
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import discord
from discord import Option
from discord.ext import commands

from patrolcord.configuration.app_configuration import app_config
from patrolcord.configuration.role_persist_settings import RolePersistSettings
from patrolcord.datatypes.role_persist_datatypes import (
    MAX_ROLES_PER_RECORD,
    PersistRecord,
    RecordAuthor,
    SavedRole,
    utc_now,
)
from patrolcord.role_persist.errors import ExpiryParseError
from patrolcord.role_persist.expiry_parsing import EXPIRY_SUGGESTIONS, parse_expiry
from patrolcord.role_persist.removal import remove_unprotected_roles
from patrolcord.role_persist.role_eligibility import (
    can_manage_role,
    can_manage_roles,
    has_risky_permissions,
    member_role_ids,
)
from patrolcord.role_persist.store import RolePersistStore, role_persist_store
from patrolcord.ui.role_persist_embed import (
    build_error_embed,
    build_record_added_embed,
    build_record_list_embed,
    build_record_removed_embed,
)
from patrolcord.util.discord_utils import fetch_app_member, fetch_member_or_none
from patrolcord.util.logger import get_logger

logger = get_logger("role_persist_commands")

_ROLE_REFERENCE = re.compile(r"<@&(\d{15,22})>|\b(\d{15,22})\b")
_RECORD_ID = re.compile(r"^[0-9a-fA-F]{24}$")

MAX_AUTOCOMPLETE_CHOICES = 25


def extract_role_ids(text: str) -> List[int]:
    """Role ids from a comma separated list of role mentions or raw ids, in order, deduplicated."""
    ids = [int(mention or raw) for mention, raw in _ROLE_REFERENCE.findall(text)]
    return list(dict.fromkeys(ids))


def is_valid_record_id(value: str) -> bool:
    return bool(_RECORD_ID.match(value))


# ---------------------------------------------------------------------------
# Autocomplete
# ---------------------------------------------------------------------------

async def autocomplete_expiry(ctx: discord.AutocompleteContext) -> List[str]:
    typed = (ctx.value or "").strip().lower()
    matches = [suggestion for suggestion in EXPIRY_SUGGESTIONS if typed in suggestion]
    return matches or list(EXPIRY_SUGGESTIONS)


async def autocomplete_record_id(ctx: discord.AutocompleteContext) -> List[discord.OptionChoice]:
    """Suggest the selected member's active records."""
    guild_id = ctx.interaction.guild_id
    user_value = ctx.options.get("user")
    if not guild_id or not user_value:
        return []
    try:
        user_id = int(user_value)
    except (TypeError, ValueError):
        return []

    store: RolePersistStore = getattr(ctx.cog, "store", role_persist_store)
    records = await store.find_active_for_user(guild_id, user_id, utc_now())
    if not records:
        return [discord.OptionChoice(name="[No Records Found]", value="0")]

    typed = (ctx.value or "").strip().lower()
    if typed:
        records = [
            record for record in records
            if record.id.startswith(typed) or typed in record.summary_text.lower()
        ]

    return [
        discord.OptionChoice(name=record.summary_text, value=record.id)
        for record in records[:MAX_AUTOCOMPLETE_CHOICES]
    ]


class RolePersistCog(commands.Cog):
    """Administrative commands for role persistence records."""

    role_persist = discord.SlashCommandGroup(
        "role-persist",
        "Utility commands for persisting member roles.",
        default_member_permissions=discord.Permissions(manage_roles=True),
    )

    def __init__(
        self,
        bot: discord.Bot,
        store: RolePersistStore = role_persist_store,
        settings: Optional[RolePersistSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.bot = bot
        self.store = store
        self.settings = settings or app_config.role_persist
        self._clock = clock
        logger.info("[ROLE PERSIST CMDS] Role persist cog loaded")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _respond_error(self, ctx: discord.ApplicationContext, template: str, detail: Optional[str] = None) -> None:
        await ctx.respond(embed=build_error_embed(template, detail), ephemeral=True)

    async def _check_context(self, ctx: discord.ApplicationContext) -> Optional[discord.Guild]:
        """Return the guild if the invoker may manage role persistence, else respond with an error."""
        guild = ctx.guild
        if guild is None:
            await self._respond_error(ctx, "not_in_guild")
            return None

        permissions = getattr(ctx.author, "guild_permissions", None)
        if permissions is None or not permissions.manage_roles:
            await self._respond_error(ctx, "member_missing_permission")
            return None
        return guild

    # ------------------------------------------------------------------
    # Slash commands
    # ------------------------------------------------------------------

    @role_persist.command(name="add", description="Persists specified roles for a person, reapplying them upon rejoin.")
    async def add(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "The person for whom to persist roles."),
        roles: Option(
            str,
            "Comma-separated list of role mentions to persist (e.g., @Role1, @Role2).",
            min_length=18,
        ),
        expiry: Option(
            str,
            "Optional: Duration (e.g., '30 days') or date for expiry. Leave blank for indefinite.",
            required=False,
            default=None,
            min_length=2,
            max_length=40,
            autocomplete=autocomplete_expiry,
        ),
        reason: Option(
            str,
            "Optional: The reason for persisting these roles.",
            required=False,
            default=None,
            min_length=6,
            max_length=256,
        ),
    ) -> None:
        await self.add_record(ctx, user, roles, expiry, reason)

    @role_persist.command(name="remove", description="Removes a specific role persistence record for a person.")
    async def remove(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "The person whose role persistence record will be removed."),
        id: Option(  # noqa: A002
            str,
            "The unique ID of the role persistence record to remove.",
            min_length=1,
            max_length=24,
            autocomplete=autocomplete_record_id,
        ),
    ) -> None:
        await self.remove_record(ctx, user, id)

    @role_persist.command(name="list", description="Lists active role persistence records for the server or a person.")
    async def list_command(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "Only show records for this person.", required=False, default=None),
    ) -> None:
        await self.list_records(ctx, user)

    # ------------------------------------------------------------------
    # Command bodies
    # ------------------------------------------------------------------

    async def add_record(
        self,
        ctx: discord.ApplicationContext,
        user: discord.abc.User,
        roles_text: str,
        expiry_text: Optional[str],
        reason: Optional[str],
    ) -> Optional[PersistRecord]:
        guild = await self._check_context(ctx)
        if guild is None:
            return None

        app_member = await fetch_app_member(guild, self.bot)
        if app_member is None or not can_manage_roles(app_member):
            await self._respond_error(ctx, "app_missing_permission")
            return None

        resolved = [role for role in (guild.get_role(rid) for rid in extract_role_ids(roles_text)) if role is not None]
        if not resolved:
            await self._respond_error(ctx, "no_valid_roles")
            return None
        if len(resolved) > MAX_ROLES_PER_RECORD:
            await self._respond_error(ctx, "too_many_roles")
            return None

        persistable = [
            role for role in resolved
            if can_manage_role(role, app_member) and not has_risky_permissions(role)
        ]
        if not persistable:
            await self._respond_error(ctx, "cannot_persist_roles")
            return None
        if len(persistable) != len(resolved):
            await self._respond_error(ctx, "some_roles_not_persistable")
            return None

        now = self._clock()
        expiry = None
        if expiry_text:
            try:
                expiry = parse_expiry(expiry_text, now, timedelta(hours=self.settings.min_expiry_hours))
            except ExpiryParseError as exc:
                detail = None
                if exc.template == "expiry_too_soon":
                    detail = f"Records with an expiry must last at least {self.settings.min_expiry_hours:g} hour(s)."
                await self._respond_error(ctx, exc.template, detail)
                return None

        await ctx.defer()
        record = PersistRecord.create(
            guild.id,
            user.id,
            [SavedRole(role_id=role.id, name=role.name) for role in persistable],
            RecordAuthor(user_id=ctx.author.id, username=ctx.author.name),
            reason=reason,
            expiry=expiry,
            created_at=now,
        )
        await self.store.create(record)

        member = await fetch_member_or_none(guild, user.id)
        if member is not None:
            held = member_role_ids(member)
            missing = [role for role in persistable if role.id not in held]
            if missing:
                try:
                    await member.add_roles(
                        *missing,
                        reason=f"Role persistence added by @{ctx.author.name} ({ctx.author.id}); ID: {record.id}.",
                    )
                except discord.HTTPException as exc:
                    logger.warning("[ROLE PERSIST CMDS] Could not grant roles for record %s: %s", record.id, exc)

        logger.info(
            "[ROLE PERSIST CMDS] %s persisted %d role(s) for %s in guild %s (record %s)",
            ctx.author.id, len(record.roles), user.id, guild.id, record.id,
        )
        await ctx.respond(embed=build_record_added_embed(record))
        return record

    async def remove_record(
        self,
        ctx: discord.ApplicationContext,
        user: discord.abc.User,
        record_id: str,
    ) -> Optional[PersistRecord]:
        guild = await self._check_context(ctx)
        if guild is None:
            return None

        record_id = record_id.strip()
        if not is_valid_record_id(record_id):
            await self._respond_error(ctx, "malformed_record_id")
            return None

        record = await self.store.get(guild.id, user.id, record_id)
        if record is None:
            await self._respond_error(ctx, "record_not_found")
            return None

        if not await self.store.delete(record.id):
            await self._respond_error(ctx, "delete_failed")
            return None

        member = await fetch_member_or_none(guild, user.id)
        app_member = await fetch_app_member(guild, self.bot) if member is not None else None
        if member is not None and app_member is not None and can_manage_roles(app_member):
            try:
                await remove_unprotected_roles(
                    self.store,
                    member,
                    app_member,
                    [record],
                    self._clock(),
                    reason=f"Role persistence record removed by @{ctx.author.name}.",
                )
            except discord.HTTPException as exc:
                logger.warning("[ROLE PERSIST CMDS] Could not strip roles of record %s: %s", record.id, exc)

        logger.info("[ROLE PERSIST CMDS] %s removed record %s in guild %s", ctx.author.id, record.id, guild.id)
        await ctx.respond(embed=build_record_removed_embed(record))
        return record

    async def list_records(
        self,
        ctx: discord.ApplicationContext,
        user: Optional[discord.abc.User] = None,
    ) -> List[PersistRecord]:
        guild = await self._check_context(ctx)
        if guild is None:
            return []

        now = self._clock()
        records = await self.store.list_active(guild.id, now, user_id=user.id if user else None)
        await ctx.respond(embed=build_record_list_embed(records, now, user))
        return records


def setup(bot: discord.Bot) -> None:
    bot.add_cog(RolePersistCog(bot))
