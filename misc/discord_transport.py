from __future__ import annotations

from typing import Callable

import discord

from misc.live_embed import build_stream_embed
from streams.errors import MessageNotFound
from streams.errors import PermissionDenied
from streams.errors import TransportError
from streams.models import Destination
from streams.models import StreamEvent


class DiscordTransport:
    """send / edit / fetch against text channels, with discord errors mapped
    onto the engine's transport errors."""

    def __init__(self, bot, *, embed_builder: Callable[[StreamEvent], discord.Embed] | None = None) -> None:
        self.bot = bot
        self.embed_builder = embed_builder or build_stream_embed

    async def _get_channel(self, destination: Destination):
        try:
            channel_id = int(destination.destination_id)
        except (TypeError, ValueError) as e:
            raise TransportError(f"invalid channel id {destination.destination_id!r}") from e
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.Forbidden as e:
            raise PermissionDenied(f"cannot access {destination.label()}: {e}") from e
        except discord.HTTPException as e:
            raise TransportError(f"channel {destination.label()} unavailable: {e}") from e

    def _embed(self, event: StreamEvent | None):
        if event is None:
            return None
        return self.embed_builder(event)

    async def send(self, destination: Destination, content: str, event: StreamEvent | None = None) -> str:
        channel = await self._get_channel(destination)
        try:
            message = await channel.send(content=content, embed=self._embed(event))
        except discord.Forbidden as e:
            raise PermissionDenied(str(e)) from e
        except discord.HTTPException as e:
            raise TransportError(str(e)) from e
        return str(message.id)

    async def fetch(self, destination: Destination, message_ref: str):
        channel = await self._get_channel(destination)
        try:
            return await channel.fetch_message(int(message_ref))
        except discord.NotFound as e:
            raise MessageNotFound(f"message {message_ref} not found in {destination.label()}") from e
        except discord.Forbidden as e:
            raise PermissionDenied(str(e)) from e
        except discord.HTTPException as e:
            raise TransportError(str(e)) from e
        except ValueError as e:
            raise MessageNotFound(f"invalid message reference {message_ref!r}") from e

    async def edit(
        self,
        destination: Destination,
        message_ref: str,
        content: str,
        event: StreamEvent | None = None,
    ) -> None:
        channel = await self._get_channel(destination)
        try:
            partial = channel.get_partial_message(int(message_ref))
            await partial.edit(content=content, embed=self._embed(event))
        except discord.NotFound as e:
            raise MessageNotFound(f"message {message_ref} not found in {destination.label()}") from e
        except discord.Forbidden as e:
            raise PermissionDenied(str(e)) from e
        except discord.HTTPException as e:
            raise TransportError(str(e)) from e
        except ValueError as e:
            raise MessageNotFound(f"invalid message reference {message_ref!r}") from e


def make_presence_sink(bot):
    async def presence_sink(event: StreamEvent | None) -> None:
        if event is None:
            await bot.change_presence(activity=None)
            return
        await bot.change_presence(
            activity=discord.Streaming(name=event.display_name, url=event.channel_url())
        )

    return presence_sink
