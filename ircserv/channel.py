"""Channels and the registry that owns them."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from .client import Client
from .replies import (
    ERR_BADCHANMASK,
    ERR_NOSUCHCHANNEL,
    RPL_ENDOFNAMES,
    RPL_NAMREPLY,
    SERVER_NAME,
    send_error,
)

log = logging.getLogger(__name__)

CHANNEL_PREFIXES = "&#+!"
MAX_CHANNEL_NAME_LENGTH = 50


class Channel:
    """A channel with its members, operators, invites and modes.

    Members are keyed by file descriptor and always listed in descriptor order.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.topic = ""
        self.invite_only = False
        self.topic_restricted = False
        self.password: Optional[str] = None
        self.user_limit: Optional[int] = None
        self._members: dict[int, Client] = {}
        self._operators: dict[int, Client] = {}
        self._pending_invites: dict[int, Client] = {}
        log.info("New channel created: %s", name)

    @property
    def has_password(self) -> bool:
        return self.password is not None

    @property
    def has_user_limit(self) -> bool:
        return self.user_limit is not None

    @property
    def operators(self) -> list[Client]:
        """Operators in descriptor order."""
        return [self._operators[fd] for fd in sorted(self._operators)]

    def members(self) -> list[Client]:
        """Members in descriptor order."""
        return [self._members[fd] for fd in sorted(self._members)]

    def member_by_nickname(self, nickname: str) -> Optional[Client]:
        return next((c for c in self.members() if c.nickname == nickname), None)

    def is_member(self, client: Optional[Client]) -> bool:
        return client is not None and client.fd in self._members

    def is_operator(self, client: Optional[Client]) -> bool:
        return client is not None and client.fd in self._operators

    def add_operator(self, client: Optional[Client]) -> None:
        if client is not None:
            self._operators[client.fd] = client

    def remove_operator(self, client: Optional[Client]) -> None:
        if client is not None:
            self._operators.pop(client.fd, None)

    def set_user_limit(self, limit: int) -> None:
        """Set the member limit; non-positive limits are ignored."""
        if limit > 0:
            self.user_limit = limit

    def unset_user_limit(self) -> None:
        self.user_limit = None

    def add_member(self, client: Optional[Client]) -> None:
        """Add a member; the first member becomes an operator."""
        if client is None or self.is_member(client):
            return
        self._members[client.fd] = client
        if len(self._members) == 1:
            self._operators[client.fd] = client
        log.info("Client %s joined %s", client.nickname, self.name)

    def remove_member(
        self, client: Optional[Client], manager: Optional[ChannelManager] = None
    ) -> None:
        """Remove a member; an emptied channel is dropped from ``manager``."""
        if client is None or not self.is_member(client):
            return
        del self._members[client.fd]
        self._operators.pop(client.fd, None)
        log.info("Client %s left %s", client.nickname, self.name)
        if not self._members and manager is not None:
            manager.remove_channel(self)

    def toggle_topic_restricted(self) -> None:
        self.topic_restricted = not self.topic_restricted

    def broadcast(self, message: str, exclude: Optional[Client] = None) -> None:
        """Send ``message`` to every member except ``exclude``."""
        for member in self.members():
            if member is not exclude:
                member.reply(message)
                log.debug("Broadcast sent in %s", self.name)

    def mode_string(self) -> str:
        """The channel modes as ``+flags`` followed by their parameters."""
        flags = "+"
        params = ""
        if self.invite_only:
            flags += "i"
        if self.topic_restricted:
            flags += "t"
        if self.password is not None:
            flags += "k"
            params += f" {self.password}"
        if self.user_limit is not None:
            flags += "l"
            params += f" {self.user_limit}"
        return flags + params

    def is_invited(self, client: Client) -> bool:
        return client.fd in self._pending_invites

    def add_pending_invite(self, client: Optional[Client]) -> None:
        if client is not None:
            self._pending_invites[client.fd] = client

    def remove_invite(self, client: Client) -> None:
        self._pending_invites.pop(client.fd, None)

    def set_password(self, password: str) -> None:
        self.password = password

    def unset_password(self) -> None:
        self.password = None

    def send_names_list_to(self, client: Client) -> None:
        """Send the NAMES reply for this channel to ``client``."""
        names = "".join(
            f"@{m.nickname} " if self.is_operator(m) else f"{m.nickname} "
            for m in self.members()
        )
        client.reply(f":{SERVER_NAME} {RPL_NAMREPLY} {client.nickname} = {self.name} :{names}")
        client.reply(
            f":{SERVER_NAME} {RPL_ENDOFNAMES} {client.nickname} {self.name} :End of NAMES list"
        )

    def send_names_list_to_all(self) -> None:
        for member in self.members():
            self.send_names_list_to(member)


class ChannelManager:
    """Creates, looks up and discards channels by name."""

    def __init__(self) -> None:
        self._channels: dict[str, Channel] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._channels

    def __len__(self) -> int:
        return len(self._channels)

    def __iter__(self) -> Iterator[Channel]:
        return iter(list(self._channels.values()))

    def validate_channel_name(self, name: str, client: Client) -> bool:
        """Check ``name`` against the channel naming rules, replying with an error if it fails."""
        if not name:
            send_error(client, ERR_NOSUCHCHANNEL, "*", ":Empty channel name")
            return False
        if name[0] not in CHANNEL_PREFIXES:
            send_error(client, ERR_BADCHANMASK, name, ":Bad Channel Mask")
            return False
        if len(name) > MAX_CHANNEL_NAME_LENGTH:
            send_error(client, ERR_BADCHANMASK, name, ":Channel name too long")
            return False
        colons = 0
        for char in name:
            if char in " ,":
                send_error(
                    client, ERR_BADCHANMASK, name, ":Channel name must not contain space or comma"
                )
                return False
            if char == ":":
                colons += 1
            if colons == 2:
                send_error(client, ERR_BADCHANMASK, name, ":Bad Channel Mask")
                return False
        return True

    def get_or_create(self, name: str) -> Channel:
        channel = self._channels.get(name)
        if channel is None:
            channel = self._channels[name] = Channel(name)
        return channel

    def get(self, name: str) -> Optional[Channel]:
        return self._channels.get(name)

    def remove_client_from_all(self, client: Client) -> None:
        """Remove ``client`` from every channel and drop the channels left empty."""
        emptied = []
        for name, channel in self._channels.items():
            channel.remove_member(client, None)
            if not channel.members():
                emptied.append(name)
        for name in emptied:
            del self._channels[name]
            log.info("Channel %s destroyed.", name)

    def remove_channel(self, channel: Channel) -> None:
        if self._channels.pop(channel.name, None) is not None:
            log.info("Channel %s destroyed.", channel.name)