"""Moderation bot that watches channel messages for banned words."""

from __future__ import annotations

import logging
from typing import Optional

from .channel import Channel, ChannelManager
from .client import Client
from .replies import SERVER_NAME

log = logging.getLogger(__name__)

DEFAULT_WORDLIST = ("vim", "windows", "jonas")
MAX_WARNINGS = 2


class Bot:
    """Counts offences per client and removes repeat offenders from channels."""

    def __init__(self, wordlist: tuple[str, ...] = DEFAULT_WORDLIST) -> None:
        self.wordlist: list[str] = list(wordlist)
        self.warnings: dict[Client, int] = {}

    def _find_banned(self, message: str) -> Optional[str]:
        return next((word for word in self.wordlist if word in message), None)

    def inspect_message(
        self,
        client: Client,
        message: str,
        channel: Optional[Channel],
        manager: Optional[ChannelManager],
    ) -> bool:
        """Return True if ``message`` may be delivered, False if the bot stopped it."""
        if self._find_banned(message) is None:
            return True

        count = self.warnings.get(client, 0) + 1
        self.warnings[client] = count
        nick = client.nickname

        if channel is None:
            return False

        if count > MAX_WARNINGS:
            client.reply(
                f":BOT NOTICE {nick} :[BOT] You have been removed from {channel.name} "
                "for repeated inappropriate language."
            )
            should_promote = (
                channel.is_operator(client)
                and len(channel.operators) == 1
                and len(channel.members()) > 1
            )
            if should_promote:
                successor = next((m for m in channel.members() if m is not client), None)
                if successor is not None:
                    channel.add_operator(successor)
                    channel.broadcast(
                        f":{SERVER_NAME} MODE {channel.name} +o {successor.nickname}"
                    )
                    channel.broadcast(
                        f":BOT PRIVMSG {channel.name} :[BOT] {successor.nickname} "
                        "has been promoted to channel operator."
                    )
            channel.broadcast(
                f":{client.prefix} PART {channel.name} :[BOT] Repeated inappropriate language."
            )
            channel.remove_member(client, manager)
        else:
            channel.broadcast(
                f":BOT PRIVMSG {channel.name} :[BOT] Warning {count}/{MAX_WARNINGS} "
                f"for {nick} : inappropriate language detected."
            )

        log.info("[BOT] Warning %d/%d for %s", count, MAX_WARNINGS, nick)
        return False