import pytest

from ircserv.channel import Channel, ChannelManager
from ircserv.client import Client
from ircserv.replies import (
    ERR_BADCHANMASK,
    ERR_NOSUCHCHANNEL,
    RPL_ENDOFNAMES,
    RPL_NAMREPLY,
)


def make_client(fd, nickname, username="user"):
    sent = []
    client = Client(fd=fd, hostname="127.0.0.1", send=sent.append)
    client.nickname = nickname
    client.username = username
    return client, sent


def decoded(sent):
    return [chunk.decode().removesuffix("\r\n") for chunk in sent]


def test_first_member_becomes_operator():
    channel = Channel("#chan")
    alice, _ = make_client(4, "alice")
    bob, _ = make_client(5, "bob")
    channel.add_member(alice)
    channel.add_member(bob)
    assert channel.is_operator(alice)
    assert not channel.is_operator(bob)
    assert channel.operators == [alice]


def test_members_listed_by_descriptor():
    channel = Channel("#chan")
    late, _ = make_client(9, "late")
    early, _ = make_client(3, "early")
    channel.add_member(late)
    channel.add_member(early)
    assert channel.members() == [early, late]


def test_add_member_twice_is_noop():
    channel = Channel("#chan")
    alice, _ = make_client(4, "alice")
    channel.add_member(alice)
    channel.add_member(alice)
    channel.add_member(None)
    assert channel.members() == [alice]


def test_member_by_nickname():
    channel = Channel("#chan")
    alice, _ = make_client(4, "alice")
    channel.add_member(alice)
    assert channel.member_by_nickname("alice") is alice
    assert channel.member_by_nickname("nobody") is None


def test_none_is_neither_member_nor_operator():
    channel = Channel("#chan")
    assert channel.is_member(None) is False
    assert channel.is_operator(None) is False


def test_remove_member_drops_operator_status():
    channel = Channel("#chan")
    alice, _ = make_client(4, "alice")
    bob, _ = make_client(5, "bob")
    channel.add_member(alice)
    channel.add_member(bob)
    channel.remove_member(alice)
    assert not channel.is_member(alice)
    assert not channel.is_operator(alice)
    assert channel.members() == [bob]


def test_remove_last_member_removes_channel_from_manager():
    manager = ChannelManager()
    channel = manager.get_or_create("#chan")
    alice, _ = make_client(4, "alice")
    channel.add_member(alice)
    channel.remove_member(alice, manager)
    assert manager.get("#chan") is None
    assert "#chan" not in manager


def test_remove_non_member_keeps_channel():
    manager = ChannelManager()
    channel = manager.get_or_create("#chan")
    stranger, _ = make_client(6, "stranger")
    channel.remove_member(stranger, manager)
    assert manager.get("#chan") is channel


def test_add_and_remove_operator():
    channel = Channel("#chan")
    alice, _ = make_client(4, "alice")
    bob, _ = make_client(5, "bob")
    channel.add_member(alice)
    channel.add_member(bob)
    channel.add_operator(bob)
    assert channel.is_operator(bob)
    channel.remove_operator(bob)
    assert not channel.is_operator(bob)
    channel.remove_operator(None)
    assert channel.operators == [alice]


@pytest.mark.parametrize("limit", [0, -3])
def test_non_positive_user_limit_is_ignored(limit):
    channel = Channel("#chan")
    channel.set_user_limit(limit)
    assert not channel.has_user_limit
    assert channel.user_limit is None


def test_user_limit_set_and_unset():
    channel = Channel("#chan")
    channel.set_user_limit(5)
    assert channel.has_user_limit
    assert channel.user_limit == 5
    channel.unset_user_limit()
    assert not channel.has_user_limit


def test_toggle_topic_restricted():
    channel = Channel("#chan")
    channel.toggle_topic_restricted()
    assert channel.topic_restricted is True
    channel.toggle_topic_restricted()
    assert channel.topic_restricted is False


def test_broadcast_skips_excluded():
    channel = Channel("#chan")
    alice, alice_sent = make_client(4, "alice")
    bob, bob_sent = make_client(5, "bob")
    channel.add_member(alice)
    channel.add_member(bob)
    channel.broadcast("hi", exclude=alice)
    assert alice_sent == []
    assert decoded(bob_sent) == ["hi"]
    channel.broadcast("all")
    assert decoded(alice_sent) == ["all"]
    assert decoded(bob_sent) == ["hi", "all"]


def test_mode_string_default():
    assert Channel("#chan").mode_string() == "+"


def test_mode_string_all_modes():
    channel = Channel("#chan")
    channel.invite_only = True
    channel.topic_restricted = True
    channel.set_password("secret")
    channel.set_user_limit(5)
    assert channel.mode_string() == "+itkl secret 5"


def test_password_set_and_unset():
    channel = Channel("#chan")
    channel.set_password("secret")
    assert channel.has_password
    assert channel.password == "secret"
    channel.unset_password()
    assert not channel.has_password
    assert "k" not in channel.mode_string()


def test_invites():
    channel = Channel("#chan")
    bob, _ = make_client(5, "bob")
    assert not channel.is_invited(bob)
    channel.add_pending_invite(bob)
    assert channel.is_invited(bob)
    channel.remove_invite(bob)
    assert not channel.is_invited(bob)
    channel.remove_invite(bob)
    assert not channel.is_invited(bob)


def test_names_list_marks_operators():
    channel = Channel("#chan")
    alice, alice_sent = make_client(4, "alice")
    bob, _ = make_client(5, "bob")
    channel.add_member(alice)
    channel.add_member(bob)
    channel.send_names_list_to(alice)
    names, end = decoded(alice_sent)
    assert names.startswith(":localhost 353 alice = #chan :")
    assert names.split(":", 2)[2].split() == ["@alice", "bob"]
    assert end.split()[1] == RPL_ENDOFNAMES
    assert end.endswith(":End of NAMES list")


def test_names_list_to_all():
    channel = Channel("#chan")
    alice, alice_sent = make_client(4, "alice")
    bob, bob_sent = make_client(5, "bob")
    channel.add_member(alice)
    channel.add_member(bob)
    channel.send_names_list_to_all()
    for sent, nick in ((alice_sent, "alice"), (bob_sent, "bob")):
        lines = decoded(sent)
        assert len(lines) == 2
        assert lines[0].split()[1:3] == [RPL_NAMREPLY, nick]


@pytest.mark.parametrize("name", ["#ok", "&local", "+modeless", "!safe", "#a:b"])
def test_valid_channel_names(name):
    client, sent = make_client(4, "alice")
    assert ChannelManager().validate_channel_name(name, client) is True
    assert sent == []


def test_empty_channel_name():
    client, sent = make_client(4, "alice")
    assert ChannelManager().validate_channel_name("", client) is False
    line = decoded(sent)[0]
    assert line.split()[1] == ERR_NOSUCHCHANNEL
    assert line.endswith(":Empty channel name")


@pytest.mark.parametrize(
    "name, reason",
    [
        ("chan", ":Bad Channel Mask"),
        ("#" + "x" * 50, ":Channel name too long"),
        ("#a b", ":Channel name must not contain space or comma"),
        ("#a,b", ":Channel name must not contain space or comma"),
        ("#a:b:c", ":Bad Channel Mask"),
    ],
)
def test_invalid_channel_names(name, reason):
    client, sent = make_client(4, "alice")
    assert ChannelManager().validate_channel_name(name, client) is False
    lines = decoded(sent)
    assert len(lines) == 1
    assert lines[0].split()[1] == ERR_BADCHANMASK
    assert lines[0].endswith(reason)


def test_fifty_character_name_is_allowed():
    client, _ = make_client(4, "alice")
    assert ChannelManager().validate_channel_name("#" + "x" * 49, client) is True


def test_get_or_create_returns_same_channel():
    manager = ChannelManager()
    first = manager.get_or_create("#chan")
    second = manager.get_or_create("#chan")
    assert first is second
    assert first.name == "#chan"
    assert len(manager) == 1
    assert manager.get("#other") is None


def test_remove_client_from_all_drops_emptied_channels():
    manager = ChannelManager()
    alice, _ = make_client(4, "alice")
    bob, _ = make_client(5, "bob")
    solo = manager.get_or_create("#solo")
    shared = manager.get_or_create("#shared")
    solo.add_member(alice)
    shared.add_member(alice)
    shared.add_member(bob)
    manager.remove_client_from_all(alice)
    assert manager.get("#solo") is None
    assert manager.get("#shared") is shared
    assert shared.members() == [bob]
    assert list(manager) == [shared]


def test_remove_channel():
    manager = ChannelManager()
    channel = manager.get_or_create("#chan")
    manager.remove_channel(channel)
    assert len(manager) == 0
    manager.remove_channel(channel)
    assert len(manager) == 0