from __future__ import annotations

from typing import Iterable

from streams.errors import NotReady
from streams.models import Destination


def _group_allowed(guild_id: str, group_filter: Iterable[str] | None) -> bool:
    if group_filter is None:
        return True
    return guild_id in {str(g) for g in group_filter}


def find_announce_channel(guild, channel_name: str):
    wanted = str(channel_name or "").strip().lower().lstrip("#")
    for channel in list(getattr(guild, "text_channels", []) or []):
        if str(getattr(channel, "name", "")).strip().lower() == wanted:
            return channel
    return None


def destinations_for_bot(
    bot,
    *,
    channel_name: str,
    group_filter: Iterable[str] | None = None,
    verbose: bool = False,
) -> list[Destination]:
    """Every guild's announce channel, in guild order."""
    if not bot.is_ready():
        raise NotReady("Client is not ready")

    out: list[Destination] = []
    for guild in list(bot.guilds or []):
        guild_id = str(guild.id)
        if not _group_allowed(guild_id, group_filter):
            continue
        channel = find_announce_channel(guild, channel_name)
        if channel is None:
            print(f"[Discord] Configuration problem: guild {guild.name} does not have a #{channel_name} channel.")
            continue

        can_post = True
        me = getattr(guild, "me", None)
        if me is not None:
            try:
                can_post = bool(channel.permissions_for(me).send_messages)
            except (AttributeError, TypeError):
                can_post = True
        if verbose:
            print(f"[Discord]  --> Member of server {guild.name}, target channel is #{channel.name}")
        if not can_post:
            print(f"[Discord] Permission problem: I do not have SEND_MESSAGES permission on #{channel.name} in {guild.name}.")

        out.append(
            Destination(
                group_id=guild_id,
                destination_id=str(channel.id),
                display_name=str(channel.name),
                can_post=can_post,
            )
        )
    if verbose:
        print(f"[Discord] Discovered {len(out)} channels to announce to for {channel_name}.")
    return out


def make_destination_lister(bot, *, channel_name: str):
    async def list_destinations(group_filter=None) -> list[Destination]:
        return destinations_for_bot(bot, channel_name=channel_name, group_filter=group_filter)

    return list_destinations


def make_role_lookup(bot):
    """Resolves a role name (or raw id) to its mention text within one guild."""

    def role_lookup(group_id: str, role_ref: str) -> str | None:
        try:
            guild = bot.get_guild(int(group_id))
        except (TypeError, ValueError):
            return None
        if guild is None:
            return None
        wanted = str(role_ref or "").strip()
        if wanted.startswith("<@&") and wanted.endswith(">"):
            return wanted
        for role in list(getattr(guild, "roles", []) or []):
            if str(getattr(role, "name", "")).strip() == wanted or str(getattr(role, "id", "")) == wanted:
                return str(getattr(role, "mention", "")).strip() or None
        return None

    return role_lookup
