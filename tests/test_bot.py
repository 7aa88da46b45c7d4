import pytest

from ircserv.bot import DEFAULT_WORDLIST, Bot
from ircserv.channel import ChannelManager
from ircserv.client import Client


def make_client(fd, nick):
    return Client(fd=fd, hostname="127.0.0.1", nickname=nick, username=nick, registered=True)


def drain(client):
    lines = [line for line in client.outbox.decode().split("\r\n") if line]
    client.outbox.clear()
    return lines


@pytest.fixture
def setup():
    manager = ChannelManager()
    channel = manager.get_or_create("#room")
    alice = make_client(4, "alice")
    bob = make_client(5, "bob")
    channel.add_member(alice)
    channel.add_member(bob)
    return manager, channel, alice, bob


def test_clean_message_passes(setup):
    manager, channel, alice, bob = setup
    assert Bot().inspect_message(alice, "hello there", channel, manager) is True
    assert drain(alice) == []
    assert drain(bob) == []


@pytest.mark.parametrize("word", DEFAULT_WORDLIST)
def test_banned_word_is_blocked_and_warned(setup, word):
    manager, channel, alice, bob = setup
    bot = Bot()
    assert bot.inspect_message(alice, f"I love {word}", channel, manager) is False
    assert bot.warnings[alice] == 1
    warning = drain(bob)
    assert len(warning) == 1
    assert warning[0].startswith(":BOT PRIVMSG #room :[BOT] Warning 1/2 for alice")
    assert channel.is_member(alice)


def test_third_offence_removes_member_and_promotes(setup):
    manager, channel, alice, bob = setup
    bot = Bot()
    for _ in range(3):
        bot.inspect_message(alice, "vim forever", channel, manager)
    assert not channel.is_member(alice)
    assert channel.is_operator(bob)
    bob_lines = drain(bob)
    assert any(line.endswith("MODE #room +o bob") for line in bob_lines)
    assert any(f":{alice.prefix} PART #room" in line for line in bob_lines)
    assert any(line.startswith(":BOT NOTICE alice") for line in drain(alice))


def test_non_operator_removed_without_promotion(setup):
    manager, channel, alice, bob = setup
    bot = Bot()
    for _ in range(3):
        bot.inspect_message(bob, "windows", channel, manager)
    assert not channel.is_member(bob)
    assert channel.operators == [alice]
    assert not any(" MODE " in line for line in drain(alice))


def test_last_member_removal_drops_channel():
    manager = ChannelManager()
    channel = manager.get_or_create("#solo")
    alice = make_client(4, "alice")
    channel.add_member(alice)
    bot = Bot()
    for _ in range(3):
        bot.inspect_message(alice, "jonas", channel, manager)
    assert "#solo" not in manager


def test_warnings_count_without_channel(setup):
    manager, channel, alice, bob = setup
    bot = Bot()
    assert bot.inspect_message(alice, "vim", None, manager) is False
    assert bot.inspect_message(alice, "vim", None, manager) is False
    assert drain(alice) == []
    assert bot.warnings[alice] == 2
    bot.inspect_message(alice, "vim", channel, manager)
    assert not channel.is_member(alice)


def test_custom_wordlist():
    bot = Bot(("emacs",))
    alice = make_client(4, "alice")
    assert bot.inspect_message(alice, "vim", None, None) is True
    assert bot.inspect_message(alice, "emacs", None, None) is False