# ircserv

The protocol core of a small IRC server. It keeps track of connected
clients and channels, parses incoming command lines and produces the
reply lines, with numeric codes from the IRC specification and the
`:localhost` server prefix.

## What it handles

Commands available to every connection:

- `PASS`, `NICK`, `USER` — registration. Once the password has been
  accepted and a nickname and a username are set, the client is sent
  the `001` welcome and marked registered, provided no other client
  holds the same nickname. A nickname clash before registration sends
  an `ERROR` line and sets `Client.to_disconnect`.
- `CAP LS` (answered with an empty capability list; other `CAP`
  subcommands are ignored), `PING`, `WHO` for a channel or a nick.

Commands for registered clients only:

- `PRIVMSG` to a nick or a `#channel`, and `QUIT`.
- `JOIN`, `PART`, `KICK`, `INVITE`, `TOPIC`.
- `MODE` with the channel modes `i` (invite only), `t` (topic set by
  operators only), `k` (channel key), `l` (user limit) and `o`
  (grant or take operator status). User modes are refused.

Any other command from a registered client gets `421`; from an
unregistered one, `451`.

The first member of a channel becomes its operator, and a channel is
removed when its last member leaves.

## Moderation bot

Messages sent to a channel pass through `Bot.inspect_message`, which
returns `True` when the message may be delivered. A message containing a
word from the bot's list is stopped and earns its sender a warning that
is announced to the channel; on the third offence the sender is removed
from the channel instead. If the sender was the only operator and others
remain, the first other member is promoted before the removal.

## Layout

- `ircserv.replies` — the numeric reply codes, `trim` and `send_error`.
- `ircserv.client` — `Client`, one connection's identity, registration
  state and outgoing replies.
- `ircserv.channel` — `Channel` and `ChannelManager`.
- `ircserv.bot` — `Bot`.
- `ircserv.channel_commands` — `handle_join`, `handle_part`, `handle_kick`,
  `handle_mode`, `apply_channel_mode`, `handle_topic`, `handle_invite`.
- `ircserv.dispatcher` — `ServerState` and `process(state, fd, command)`,
  which runs one command line from the client on `fd`, along with the
  session handlers (`handle_pass`, `handle_nick`, `handle_user`,
  `handle_privmsg`, `handle_quit`, `handle_ping`, `handle_who`) and the
  helpers `split_params` and `message_text`.

## Use

```python
from ircserv.client import Client
from ircserv.dispatcher import ServerState, process

password = "password"
state = ServerState(password=password)
alice = Client(fd=4, hostname="127.0.0.1")
state.add_client(alice)

for line in ["PASS password", "NICK alice", "USER alice 0 * :Alice", "JOIN #chat"]:
    process(state, alice.fd, line)

print(alice.outbox.decode())
```

`Client.reply` appends `\r\n` to each line. If the client was created
with a `send` callable, the bytes are passed to it; otherwise they are
queued in `Client.outbox`. `ServerState.remove_client` drops a client
from the server, from every channel it was in and from the bot's
warning counts.

## What it does not do

The package has no network layer and no command to start a server. It
opens no sockets, accepts no connections, does not split a byte stream
into lines and does not close connections: a caller that wants a running
server supplies that front end, feeds each line to `process`, delivers
the replies and closes clients whose `to_disconnect` is set.

## Tests

The test suite uses pytest and is installed with the `test` extra.