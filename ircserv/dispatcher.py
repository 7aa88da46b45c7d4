"""Command dispatch: parses client lines and runs the matching handler."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from .bot import Bot
from .channel import ChannelManager
from .channel_commands import (
    handle_invite,
    handle_join,
    handle_kick,
    handle_mode,
    handle_part,
    handle_topic,
)
from .client import Client
from .replies import (
    ERR_ALREADYREGISTRED,
    ERR_CANNOTSENDTOCHAN,
    ERR_NEEDMOREPARAMS,
    ERR_NICKNAMEINUSE,
    ERR_NONICKNAMEGIVEN,
    ERR_NOSUCHCHANNEL,
    ERR_NOSUCHNICK,
    ERR_NOTEXTTOSEND,
    ERR_NOTONCHANNEL,
    ERR_NOTREGISTERED,
    ERR_PASSWDMISMATCH,
    ERR_UNKNOWNCOMMAND,
    RPL_ENDOFWHO,
    RPL_WHOREPLY,
    SERVER_NAME,
)

log = logging.getLogger(__name__)

_NICK_IN_USE_ERROR = f":{SERVER_NAME} ERROR :Nickname already in use, closing connection"


@dataclass
class ServerState:
    """Everything a command can touch: the password, the clients, the channels and the bot."""

    password: str
    clients: dict[int, Client] = field(default_factory=dict)
    channels: ChannelManager = field(default_factory=ChannelManager)
    bot: Bot = field(default_factory=Bot)

    def add_client(self, client: Client) -> None:
        self.clients[client.fd] = client

    def remove_client(self, fd: int) -> None:
        """Forget the client on ``fd`` and take it out of every channel."""
        client = self.clients.pop(fd, None)
        if client is None:
            return
        self.channels.remove_client_from_all(client)
        self.bot.warnings.pop(client, None)
        log.info("Client fd %d removed.", fd)


def split_params(text: str) -> list[str]:
    """Split on single spaces, dropping empty tokens."""
    return [token for token in text.split(" ") if token]


def message_text(command: str) -> str:
    """Everything after the first colon, or an empty string if there is none."""
    _, colon, rest = command.partition(":")
    return rest if colon else ""


def _numeric(client: Client, code: str, rest: str) -> None:
    client.reply(f":{SERVER_NAME} {code} {rest}")


def _nick_taken(nickname: str, by_other_than: Client, clients: Mapping[int, Client]) -> bool:
    return any(other is not by_other_than and other.nickname == nickname for other in clients.values())


def process(state: ServerState, fd: int, command: str) -> None:
    """Run one command line from the client on ``fd``, then check whether it completed registration."""
    if not command:
        return
    client = state.clients.get(fd)
    if client is None:
        return
    parts = split_params(command)
    if not parts:
        return
    cmd, params = parts[0], parts[1:]

    if cmd == "PASS":
        handle_pass(client, params, state.password)
    elif cmd == "NICK":
        handle_nick(client, params, state.clients)
    elif cmd == "USER":
        handle_user(client, command)
    elif cmd == "CAP":
        if params and params[0] == "LS":
            client.reply(f":{SERVER_NAME} CAP * LS :")
        return
    elif cmd == "PING":
        handle_ping(client, params)
    elif cmd == "WHO":
        handle_who(client, params, state.clients, state.channels)
    elif client.registered:
        log.debug("%s called %s", client.nickname, cmd)
        if cmd == "JOIN":
            handle_join(client, params, state.channels)
        elif cmd == "PART":
            handle_part(client, params, state.channels)
        elif cmd == "PRIVMSG":
            handle_privmsg(client, command, state)
        elif cmd == "INVITE":
            handle_invite(client, params, state.clients, state.channels)
        elif cmd == "QUIT":
            handle_quit(client, command, state)
            return
        elif cmd == "KICK":
            handle_kick(client, params, state.channels)
        elif cmd == "MODE":
            handle_mode(client, params, state.channels)
        elif cmd == "TOPIC":
            handle_topic(client, params, state.channels)
        else:
            _numeric(client, ERR_UNKNOWNCOMMAND, f"{cmd} :Unknown command")
    else:
        _numeric(client, ERR_NOTREGISTERED, ":You have not registered")

    client = state.clients.get(fd)
    if client is None:
        return

    if (
        not client.registered
        and client.pass_validated
        and client.nickname
        and client.username
        and not client.nick_conflict
    ):
        if _nick_taken(client.nickname, client, state.clients):
            client.nick_conflict = True
        else:
            client.welcome()
            client.registered = True

    if not client.registered and client.nick_conflict:
        client.reply(_NICK_IN_USE_ERROR)
        client.to_disconnect = True


def handle_pass(client: Client, params: Sequence[str], password: str) -> None:
    """Check the connection password."""
    if not params:
        _numeric(client, ERR_NEEDMOREPARAMS, "PASS :Not enough parameters")
        return
    if client.pass_validated:
        _numeric(client, ERR_ALREADYREGISTRED, ":Already registered")
        return
    if params[0] != password:
        _numeric(client, ERR_PASSWDMISMATCH, ":Password incorrect")
        return
    client.pass_validated = True


def handle_nick(client: Client, params: Sequence[str], clients: Mapping[int, Client]) -> None:
    """Set or change the nickname, refusing one that is already taken."""
    if not client.pass_validated:
        _numeric(client, ERR_NOTREGISTERED, ":PASS required first")
        return
    if not params:
        _numeric(client, ERR_NONICKNAMEGIVEN, ":No nickname given")
        return
    new_nick = params[0]
    if client.nickname == new_nick:
        return
    if _nick_taken(new_nick, client, clients):
        _numeric(client, ERR_NICKNAMEINUSE, f"{new_nick} :Nickname is already in use")
        if not client.registered:
            client.nick_conflict = True
            client.reply(_NICK_IN_USE_ERROR)
            client.to_disconnect = True
        return
    client.nick_conflict = False
    if client.registered and client.nickname:
        old_prefix = client.prefix
        client.nickname = new_nick
        client.reply(f":{old_prefix} NICK :{new_nick}")
    else:
        client.nickname = new_nick


def handle_user(client: Client, command: str) -> None:
    """Record the username and real name from a USER line."""
    if not client.pass_validated:
        _numeric(client, ERR_NOTREGISTERED, ":PASS required first")
        return
    parts = split_params(command)
    if len(parts) < 5:
        _numeric(client, ERR_NEEDMOREPARAMS, "USER :Not enough parameters")
        return
    client.username = parts[1]
    _, colon, realname = command.partition(":")
    if colon:
        client.realname = realname


def handle_privmsg(client: Client, command: str, state: ServerState) -> None:
    """Deliver a message to a channel or a user; channel messages pass the bot first."""
    parts = split_params(command)
    if len(parts) < 3:
        _numeric(client, ERR_NEEDMOREPARAMS, "PRIVMSG :Not enough parameters")
        return
    target = parts[1]
    message = message_text(command)
    if not message:
        _numeric(client, ERR_NOTEXTTOSEND, ":No text to send")
        return
    line = f":{client.prefix} PRIVMSG {target} :{message}"

    if target.startswith("#"):
        channel = state.channels.get(target)
        if channel is None:
            _numeric(client, ERR_NOSUCHCHANNEL, f"{target} :No such channel")
            return
        if not state.bot.inspect_message(client, message, channel, state.channels):
            return
        if not channel.is_member(client):
            _numeric(client, ERR_CANNOTSENDTOCHAN, f"{target} :Cannot send to channel")
            return
        channel.broadcast(line, client)
        return

    recipient = next(
        (state.clients[fd] for fd in sorted(state.clients) if state.clients[fd].nickname == target),
        None,
    )
    if recipient is None:
        _numeric(client, ERR_NOSUCHNICK, f"{target} :No such nick")
    else:
        recipient.reply(line)


def handle_quit(client: Client, command: str, state: ServerState) -> None:
    """Acknowledge the quit and drop the client."""
    client.reply(f":{SERVER_NAME} quit.")
    state.remove_client(client.fd)


def handle_ping(client: Client, params: Sequence[str]) -> None:
    if params:
        client.reply(f":{SERVER_NAME} PONG {SERVER_NAME} :{params[0]}")
    else:
        client.reply(f":{SERVER_NAME} PONG {SERVER_NAME}")


def handle_who(
    client: Client,
    params: Sequence[str],
    clients: Mapping[int, Client],
    manager: ChannelManager,
) -> None:
    """List the members of a channel, or the user with a given nickname."""
    nick = client.nickname
    if not params:
        _numeric(client, RPL_ENDOFWHO, f"{nick} * :End of WHO list")
        return
    target = params[0]

    if target.startswith("#"):
        channel = manager.get(target)
        if channel is None:
            _numeric(client, ERR_NOSUCHCHANNEL, f"{target} :No such channel")
            return
        if not channel.is_member(client):
            _numeric(client, ERR_NOTONCHANNEL, f"{target} :You're not on that channel")
            return
        for member in channel.members():
            flags = "H@" if channel.is_operator(member) else "H"
            _numeric(
                client,
                RPL_WHOREPLY,
                f"{nick} {target} {member.username} {member.hostname} {SERVER_NAME} "
                f"{member.nickname} {flags} :0 {member.realname}",
            )
    else:
        found = next(
            (clients[fd] for fd in sorted(clients) if clients[fd].nickname == target), None
        )
        if found is not None:
            _numeric(
                client,
                RPL_WHOREPLY,
                f"{nick} * {found.username} {found.hostname} {SERVER_NAME} "
                f"{found.nickname} H :0 {found.realname}",
            )
    _numeric(client, RPL_ENDOFWHO, f"{nick} {target} :End of WHO list")