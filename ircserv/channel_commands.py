"""Handlers for the channel commands: JOIN, PART, KICK, MODE, TOPIC and INVITE."""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Sequence

from .channel import Channel, ChannelManager
from .client import Client
from .replies import (
    ERR_BADCHANNELKEY,
    ERR_CHANNELISFULL,
    ERR_CHANOPRIVSNEEDED,
    ERR_INVITEONLYCHAN,
    ERR_NEEDMOREPARAMS,
    ERR_NOSUCHCHANNEL,
    ERR_NOSUCHNICK,
    ERR_NOTONCHANNEL,
    ERR_UNKNOWNMODE,
    ERR_USERNOTINCHANNEL,
    ERR_USERONCHANNEL,
    ERR_USERSDONTMATCH,
    RPL_CHANNELMODEIS,
    RPL_INVITING,
    RPL_NOTOPIC,
    RPL_TOPIC,
    SERVER_NAME,
    send_error,
)

log = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"[ \t\n\r\f\v]*([+-]?\d+)")


def _leading_int(text: str) -> int:
    """Parse the integer at the start of ``text``, or 0 if there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _numeric(client: Client, code: str, rest: str) -> None:
    client.reply(f":{SERVER_NAME} {code} {rest}")


def handle_join(client: Client, params: Sequence[str], manager: ChannelManager) -> None:
    """Join a channel, enforcing its limit, invite-only and key modes."""
    if not params:
        _numeric(client, ERR_NEEDMOREPARAMS, "JOIN :Not enough parameters")
        return
    name = params[0]
    if not name.startswith("#"):
        _numeric(client, ERR_NOSUCHCHANNEL, f"{name} :Invalid channel name")
        return
    channel = manager.get_or_create(name)
    nick = client.nickname
    if channel.has_user_limit and len(channel.members()) >= channel.user_limit:
        _numeric(client, ERR_CHANNELISFULL, f"{nick} {name} :Cannot join channel (+l)")
        return
    if channel.invite_only and not channel.is_invited(client):
        _numeric(client, ERR_INVITEONLYCHAN, f"{nick} {name} :Cannot join channel (+i)")
        return
    if channel.has_password and (len(params) < 2 or params[1] != channel.password):
        _numeric(client, ERR_BADCHANNELKEY, f"{nick} {name} :Cannot join channel (+k)")
        return

    channel.add_member(client)
    if channel.is_invited(client):
        channel.remove_invite(client)
    if len(channel.members()) == 1:
        channel.add_operator(client)

    channel.broadcast(f":{client.prefix} JOIN {name}")
    if channel.topic:
        _numeric(client, RPL_TOPIC, f"{nick} {name} :{channel.topic}")
    channel.send_names_list_to(client)


def handle_part(client: Client, params: Sequence[str], manager: ChannelManager) -> None:
    """Leave a channel, announcing it to the members."""
    if not params:
        _numeric(client, ERR_NEEDMOREPARAMS, "PART :Not enough parameters")
        return
    name = params[0]
    channel = manager.get(name)
    if channel is None:
        _numeric(client, ERR_NOSUCHCHANNEL, f"{name} :No such channel")
        return
    if not channel.is_member(client):
        _numeric(client, ERR_NOTONCHANNEL, f"{name} :You're not on that channel")
        return
    reason = params[1] if len(params) > 1 else "Leaving"
    channel.broadcast(f":{client.prefix} PART {name} :{reason}")
    channel.remove_member(client, manager)


def handle_kick(client: Client, params: Sequence[str], manager: ChannelManager) -> None:
    """Remove another member from a channel; operators only."""
    if len(params) < 2:
        _numeric(client, ERR_NEEDMOREPARAMS, "KICK :Not enough parameters")
        return
    name, target_nick = params[0], params[1]
    comment = params[2] if len(params) > 2 else client.nickname

    channel = manager.get(name)
    if channel is None:
        _numeric(client, ERR_NOSUCHCHANNEL, f"{name} :No such channel.")
        return
    if not channel.is_member(client):
        _numeric(client, ERR_NOTONCHANNEL, f"{name} :You're not on that channel")
        return
    if not channel.is_operator(client):
        _numeric(client, ERR_CHANOPRIVSNEEDED, f"{name} :You're not channel operator")
        return
    target = channel.member_by_nickname(target_nick)
    if target is None:
        _numeric(client, ERR_USERNOTINCHANNEL, f"{name} :They aren't on that channel")
        return

    kick = f":{client.prefix} KICK {name} {target_nick} :{comment}"
    channel.broadcast(kick, target)
    target.reply(kick)
    channel.remove_member(target, manager)


def apply_channel_mode(
    client: Client, channel: Channel, flags: str, params: Sequence[str]
) -> None:
    """Apply a run of mode flags, then broadcast the changes that were made."""
    adding = True
    pending = iter(params)
    changes = ""
    change_params = ""

    for mode in flags:
        if mode in "+-":
            adding = mode == "+"
            changes += mode
            continue

        if mode == "o":
            target_nick = next(pending, None)
            if target_nick is None:
                _numeric(client, ERR_NEEDMOREPARAMS, "MODE: Missing parameters for mode o")
                return
            target = channel.member_by_nickname(target_nick)
            if target is None:
                _numeric(
                    client,
                    ERR_USERNOTINCHANNEL,
                    f"{target_nick} {channel.name} :They aren't on that channel",
                )
                return
            if adding:
                channel.add_operator(target)
            else:
                channel.remove_operator(target)
            changes += "o"
            change_params += f" {target_nick}"
        elif mode == "l":
            if adding:
                value = next(pending, None)
                if value is None:
                    _numeric(client, ERR_NEEDMOREPARAMS, "MODE: Missing parameters for mode l")
                    return
                limit = max(_leading_int(value), 0)
                channel.set_user_limit(limit)
                change_params += f" {limit}"
            else:
                channel.unset_user_limit()
            changes += "l"
        elif mode == "i":
            channel.invite_only = adding
            changes += "i"
        elif mode == "k":
            if adding:
                key = next(pending, None)
                if key is None:
                    _numeric(client, ERR_NEEDMOREPARAMS, "MODE: Missing parameter for mode k")
                    return
                channel.set_password(key)
                change_params += f" {key}"
            else:
                channel.unset_password()
            changes += "k"
        elif mode == "t":
            channel.topic_restricted = adding
            changes += "t"
        else:
            _numeric(client, ERR_UNKNOWNMODE, f"{mode} :is not a supported mode (yet)")

    if changes:
        channel.broadcast(f":{client.prefix} MODE {channel.name} {changes}{change_params}")


def handle_mode(client: Client, params: Sequence[str], manager: ChannelManager) -> None:
    """Show or change a channel's modes; user modes are not supported."""
    if not params:
        _numeric(client, ERR_NEEDMOREPARAMS, "MODE :Not enough parameters")
        return
    target = params[0]
    if not target.startswith("#"):
        _numeric(client, ERR_USERSDONTMATCH, ":User mode change is not supported")
        return
    channel = manager.get(target)
    if channel is None:
        _numeric(client, ERR_NOSUCHCHANNEL, ":No such channel")
        return
    if not channel.is_member(client):
        _numeric(client, ERR_NOTONCHANNEL, f"{target} :You're not on that channel")
        return
    if len(params) == 1:
        _numeric(client, RPL_CHANNELMODEIS, f"{client.nickname} {target} {channel.mode_string()}")
        return
    if not channel.is_operator(client):
        _numeric(client, ERR_CHANOPRIVSNEEDED, f"{target} :You're not channel operator")
        return
    mode_params = list(params[2:])
    log.debug("MODE parameters: %s", mode_params)
    apply_channel_mode(client, channel, params[1], mode_params)


def handle_topic(client: Client, params: Sequence[str], manager: ChannelManager) -> None:
    """Show or set a channel's topic."""
    if not params:
        _numeric(client, ERR_NEEDMOREPARAMS, "TOPIC :Not enough parameters")
        return
    name = params[0]
    if not manager.validate_channel_name(name, client):
        return
    channel = manager.get(name)
    if channel is None or not channel.is_member(client):
        _numeric(client, ERR_NOTONCHANNEL, f"{name} :You're not on that channel")
        return
    if len(params) == 1:
        if channel.topic:
            _numeric(client, RPL_TOPIC, f"{name} :{channel.topic}")
        else:
            _numeric(client, RPL_NOTOPIC, f"{name} :No topic is set")
        return
    if channel.topic_restricted and not channel.is_operator(client):
        _numeric(client, ERR_CHANOPRIVSNEEDED, f"{name} :You're not channel operator")
        return

    topic = " ".join(params[1:])
    if topic.startswith(":"):
        topic = topic[1:]
    channel.topic = topic
    channel.broadcast(f":{client.prefix} TOPIC {name} :{topic}")


def handle_invite(
    client: Client,
    params: Sequence[str],
    clients: Mapping[int, Client],
    manager: ChannelManager,
) -> None:
    """Invite a user to a channel, recording the invite on invite-only channels."""
    if len(params) != 2:
        send_error(client, ERR_NEEDMOREPARAMS, "NULL", ":Not enough parameters")
        return
    target_nick, name = params
    if not manager.validate_channel_name(name, client):
        return
    target: Optional[Client] = next(
        (clients[fd] for fd in sorted(clients) if clients[fd].nickname == target_nick), None
    )
    if target is None:
        send_error(client, ERR_NOSUCHNICK, target_nick, ":No such nick")
        return

    channel = manager.get(name)
    if channel is not None:
        if not channel.is_member(client):
            send_error(client, ERR_NOTONCHANNEL, name, ":You're not on that channel")
            return
        if channel.is_member(target):
            send_error(client, ERR_USERONCHANNEL, name, ":is already on channel")
            return
        if channel.invite_only:
            if not channel.is_operator(client):
                send_error(client, ERR_CHANOPRIVSNEEDED, channel.name, ":You're not channel operator")
                return
            channel.add_pending_invite(target)

    _numeric(client, RPL_INVITING, f"{client.nickname} {target.nickname} {name}")
    target.reply(f":{client.nickname} INVITE {target.nickname} :{name}")