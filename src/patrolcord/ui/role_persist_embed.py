"""
Embed creation utilities for role persistence commands.
"""

import datetime
from typing import Optional, Sequence

import discord

from patrolcord.datatypes.role_persist_datatypes import PersistRecord

# Records shown in one /role-persist list response
LIST_PAGE_SIZE = 10

# User-facing messages for command errors, keyed by template name
ERROR_MESSAGES = {
    "not_in_guild": "This command can only be used in a server.",
    "member_missing_permission": "You need the `Manage Roles` permission to use this command.",
    "app_missing_permission": "I need the `Manage Roles` permission to persist roles.",
    "no_valid_roles": "None of the provided roles could be found. Mention the roles to persist, separated by commas.",
    "too_many_roles": "A role persistence record can hold at most 6 roles.",
    "cannot_persist_roles": (
        "None of the provided roles can be persisted. Roles managed by integrations, roles at or above "
        "my highest role, and roles with moderation permissions cannot be persisted."
    ),
    "some_roles_not_persistable": (
        "Some of the provided roles cannot be persisted (managed, above my highest role, "
        "or carrying moderation permissions). Remove them and try again."
    ),
    "unknown_format": "The expiry could not be understood. Try a duration such as `3 days` or a date.",
    "date_in_past": "The expiry date must be in the future.",
    "expiry_too_soon": "The expiry is too close to the current time.",
    "malformed_record_id": "The record ID provided is malformed; it must be a 24-character hexadecimal ID.",
    "record_not_found": "No role persistence record with that ID was found for this member.",
    "delete_failed": "The role persistence record could not be deleted. Please try again.",
}


def _timestamp(value: datetime.datetime, style: str = "f") -> str:
    return discord.utils.format_dt(value, style=style)


def _role_mentions(record: PersistRecord, limit: Optional[int] = None) -> str:
    mentions = [f"<@&{role.role_id}>" for role in record.roles]
    if limit is not None and len(mentions) > limit:
        return f"{', '.join(mentions[:limit])} and {len(mentions) - limit} more..."
    return ", ".join(mentions)


def build_error_embed(template: str, detail: Optional[str] = None) -> discord.Embed:
    description = ERROR_MESSAGES.get(template, template)
    if detail:
        description = f"{description}\n{detail}"
    return discord.Embed(title="Error", description=description, color=discord.Color.red())


def build_record_added_embed(record: PersistRecord) -> discord.Embed:
    until = f"until {_timestamp(record.expiry)}" if record.expiry else "indefinitely"
    description = (
        f"Successfully added role persistence for <@{record.user_id}>.\n"
        f"The specified roles will be persisted {until} and automatically restored if the member "
        f"rejoins. To remove this persistence, use `/role-persist remove` with ID `{record.id}`."
    )
    if record.reason:
        description += f"\n\n**Reason:** {record.reason}"

    embed = discord.Embed(
        title="Role Persist Added",
        description=description,
        color=discord.Color.greyple(),
        timestamp=record.created_at,
    )
    embed.add_field(name=f"Persisted Roles ({len(record.roles)})", value=_role_mentions(record), inline=False)
    return embed


def build_record_removed_embed(record: PersistRecord) -> discord.Embed:
    embed = discord.Embed(
        title="Role Persistence Record Removed",
        description=f"The role persistence record `{record.id}` for <@{record.user_id}> has been removed.",
        color=discord.Color.green(),
    )
    embed.add_field(name="Persisted Roles", value=_role_mentions(record) or "*None*", inline=False)
    embed.add_field(
        name="Originally Saved By",
        value=f"<@{record.created_by.user_id}> (@{record.created_by.username})",
        inline=True,
    )
    embed.add_field(name="Originally Saved On", value=_timestamp(record.created_at, "F"), inline=True)
    embed.add_field(
        name="Original Expiry",
        value=_timestamp(record.expiry, "F") if record.expiry else "No expiration date set",
        inline=True,
    )
    if record.reason:
        embed.add_field(name="Original Reason", value=record.reason, inline=False)
    return embed


def build_record_list_embed(
    records: Sequence[PersistRecord],
    now: datetime.datetime,
    user: Optional[discord.abc.User] = None,
) -> discord.Embed:
    title = f"{user.display_name}'s Role Persistence Records" if user else "All Role Persistence Records"
    embed = discord.Embed(title=title, color=discord.Color.greyple(), timestamp=now)

    if not records:
        embed.description = "There are no active role persistence records to display."
        return embed

    shown = records[:LIST_PAGE_SIZE]
    embed.description = f"Displaying `{len(shown)}` of `{len(records)}` records."
    for record in shown:
        expiry_text = _timestamp(record.expiry) if record.expiry else "Never"
        header = f"ID: {record.id}" if user else f"ID: {record.id} (user {record.user_id})"
        embed.add_field(
            name=header,
            value=(
                f"**User:** <@{record.user_id}>\n"
                f"**Created By:** <@{record.created_by.user_id}>\n"
                f"**Created On:** {_timestamp(record.created_at)}\n"
                f"**Expires:** {expiry_text}\n"
                f"**Persisted Roles:** {_role_mentions(record, limit=2)}"
            ),
            inline=False,
        )
    return embed
