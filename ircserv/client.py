"""Connected client state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .replies import RPL_WELCOME, SERVER_NAME

log = logging.getLogger(__name__)


@dataclass(eq=False)
class Client:
    """One connection: identity, registration state and outgoing channel.

    Replies go through ``send`` when it is given; otherwise they are queued
    in ``outbox`` for the server to flush.
    """

    fd: int
    hostname: str = ""
    send: Optional[Callable[[bytes], object]] = field(default=None, repr=False)
    nickname: str = ""
    username: str = ""
    realname: str = ""
    buffer: str = ""
    pass_validated: bool = False
    registered: bool = False
    nick_conflict: bool = False
    to_disconnect: bool = False
    outbox: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self) -> None:
        log.info("New client connected. fd: %d, hostname: %s", self.fd, self.hostname)

    @property
    def prefix(self) -> str:
        """The ``nick!user@host`` prefix used as the source of messages."""
        return f"{self.nickname}!{self.username}@{self.hostname}"

    def reply(self, message: str) -> None:
        """Send one line to the client, terminated by CRLF."""
        data = (message + "\r\n").encode("utf-8", "surrogateescape")
        if self.send is None:
            self.outbox += data
            return
        try:
            self.send(data)
        except OSError:
            log.error("Error sending to fd %d", self.fd)

    def welcome(self) -> None:
        """Send the welcome numeric that completes registration."""
        self.reply(f":{SERVER_NAME} {RPL_WELCOME} {self.nickname} :Welcome to the IRC server!")
        log.info("Client %s is now registered.", self.nickname)