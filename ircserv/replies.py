"""Numeric reply codes and small helpers for building server replies."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .client import Client

SERVER_NAME = "localhost"

RPL_WELCOME = "001"
RPL_YOURHOST = "002"
RPL_CREATED = "003"
RPL_MYINFO = "004"
RPL_AWAY = "301"
RPL_ENDOFWHO = "315"
RPL_CHANNELMODEIS = "324"
RPL_NOTOPIC = "331"
RPL_TOPIC = "332"
RPL_INVITING = "341"
RPL_WHOREPLY = "352"
RPL_NAMREPLY = "353"
RPL_ENDOFNAMES = "366"

ERR_NOSUCHNICK = "401"
ERR_NOSUCHCHANNEL = "403"
ERR_CANNOTSENDTOCHAN = "404"
ERR_NOTEXTTOSEND = "412"
ERR_UNKNOWNCOMMAND = "421"
ERR_NONICKNAMEGIVEN = "431"
ERR_NICKNAMEINUSE = "433"
ERR_USERNOTINCHANNEL = "441"
ERR_NOTONCHANNEL = "442"
ERR_USERONCHANNEL = "443"
ERR_NOTREGISTERED = "451"
ERR_NEEDMOREPARAMS = "461"
ERR_ALREADYREGISTRED = "462"
ERR_PASSWDMISMATCH = str(464)
ERR_CHANNELISFULL = "471"
ERR_UNKNOWNMODE = "472"
ERR_INVITEONLYCHAN = "473"
ERR_BADCHANNELKEY = str(475)
ERR_BADCHANMASK = "476"
ERR_CHANOPRIVSNEEDED = "482"
ERR_USERSDONTMATCH = "502"


def trim(text: str) -> str:
    """Strip leading and trailing spaces and tabs."""
    return text.strip(" \t")


def send_error(client: Client, code: str, target: str, message: str) -> None:
    """Send a numeric error to ``client``; an empty or ``"NULL"`` target is left out."""
    line = f":{SERVER_NAME} {code} {client.nickname}"
    if target and target != "NULL":
        line += f" {target}"
    line += f" {message}"
    client.reply(line)