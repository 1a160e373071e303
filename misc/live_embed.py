from __future__ import annotations

import time
from datetime import datetime

import discord

from config.defaults import ENDED_EMBED_COLOR
from config.defaults import LIVE_EMBED_COLOR
from config.defaults import TWITCH_BOXART_SIZE
from config.defaults import TWITCH_PREVIEW_SIZE
from misc.discord_timestamps import uptime_text
from streams.models import StreamEvent
from streams.models import utc_now


def _sized(template: str | None, size: tuple[int, int]) -> str | None:
    if not template:
        return None
    width, height = size
    return template.replace("{width}", str(width)).replace("{height}", str(height))


def preview_image_url(event: StreamEvent, *, cache_buster: int | None = None) -> str | None:
    url = _sized(event.thumbnail_ref, TWITCH_PREVIEW_SIZE)
    if not url:
        return None
    buster = int(time.time()) if cache_buster is None else int(cache_buster)
    return f"{url}?t={buster}"


def thumbnail_url(event: StreamEvent, *, use_boxart: bool = False) -> str | None:
    if use_boxart and event.boxart_ref:
        return _sized(event.boxart_ref, TWITCH_BOXART_SIZE)
    return event.profile_image_ref


def build_stream_embed(
    event: StreamEvent,
    *,
    use_boxart: bool = False,
    now: datetime | None = None,
    cache_buster: int | None = None,
) -> discord.Embed:
    now = now or utc_now()
    if event.is_live:
        embed = discord.Embed(
            title=f":red_circle: **{event.display_name} is live on Twitch!**",
            url=event.channel_url(),
            color=discord.Color(LIVE_EMBED_COLOR),
        )
        embed.add_field(name="Title", value=event.title or "-", inline=False)
    else:
        embed = discord.Embed(
            title=f":white_circle: {event.display_name} was live on Twitch.",
            description="The stream has now ended.",
            url=event.channel_url(),
            color=discord.Color(ENDED_EMBED_COLOR),
        )
        embed.add_field(name="Title", value=event.title or "-", inline=True)

    if event.game_name:
        embed.add_field(name="Game", value=event.game_name, inline=False)

    thumb = thumbnail_url(event, use_boxart=use_boxart)
    if thumb:
        embed.set_thumbnail(url=thumb)

    if event.is_live:
        embed.add_field(name="Status", value=f"Live with {event.viewer_count} viewers", inline=True)
        image = preview_image_url(event, cache_buster=cache_buster)
        if image:
            embed.set_image(url=image)
        embed.add_field(name="Uptime", value=uptime_text(event.started_at, now), inline=True)

    return embed
