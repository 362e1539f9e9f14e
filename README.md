# distkit

Building blocks for distributed systems, written in plain Python. The package
needs nothing outside the standard library.

- **`distkit.network`**: an in-process RPC network. It can drop, delay and
  reorder messages and disconnect endpoints, so you can test protocols under
  failure.
- **`distkit.raft`**: a Raft peer that runs over `distkit.network`. It does
  leader election and log replication, and delivers committed entries as
  `ApplyCommand` values on a queue.
- **`distkit.marshalling`**: `marshal` / `unmarshal` for messages. Only
  built-in values, a few date and time types and classes passed to
  `register` are accepted. Anything else raises `MarshalError`.
- **`distkit.refs`**: `ActorRef`, which names an actor by its address and a
  counter. It has a JSON form (`to_json` / `ref_from_json`).
- **`distkit.kvcommon`**: request and reply dataclasses for a key-value
  protocol (`GetArgs`, `GetReply`, `ListArgs`, `ListReply`, `PutArgs`,
  `PutReply`). It also has length-prefixed framing (`write_frame`,
  `read_frame`).
- **`distkit.actor_context`**: `ActorContext`. An actor uses it to send
  messages and to count its sends per recipient.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install .[test]
pytest
```

## The simulated network

A handler is a public method of the receiver. It takes exactly one argument,
the request, and returns the reply. The service name is the receiver's class
name.

```python
from distkit.network import Network, Server, Service

class Echo:
    def shout(self, text):
        return text.upper()

net = Network()
end = net.make_end("client->echo")
server = Server()
server.add_service(Service(Echo()))
net.add_server("echo", server)
net.connect("client->echo", "echo")
net.enable("client->echo", True)

print(end.call("Echo.shout", "hi"))   # "HI"
print(net.get_count("echo"))          # 1
```

`call` returns `None` when no reply arrives. That happens when the endpoint
is disabled or not connected, when the server has been removed with
`delete_server`, or when the message was lost on an unreliable network. The
following switch failure modes on or off:

- `set_reliable(False)` adds short delays and drops about 10% of requests and
  replies.
- `set_long_reordering(True)` sometimes holds replies back for a long time.
- `set_long_delays(True)` makes calls over a disabled connection take up to
  seven seconds to fail.

## Raft over the simulated network

```python
import queue
from distkit.network import Network, Server, Service
from distkit.raft import Raft

n = 3
net = Network()
ends = [[net.make_end((i, j)) for j in range(n)] for i in range(n)]
for i in range(n):
    for j in range(n):
        net.connect((i, j), j)
        net.enable((i, j), True)

applied = [queue.Queue() for _ in range(n)]
peers = []
for i in range(n):
    peer = Raft(ends[i], i, applied[i])
    server = Server()
    server.add_service(Service(peer))
    net.add_server(i, server)
    peers.append(peer)

# Once a leader has been elected:
# index, term, is_leader = leader.put_command(42)
# applied[k].get() -> ApplyCommand(index=..., command=42) on every peer k
```

- `Raft.get_state()` returns the peer's index, its current term and whether
  it believes it is the leader.
- `put_command` returns `(-1, term, False)` on a peer that is not the leader.
- `stop()` ends elections and heartbeats.

## Marshalling and refs

```python
from dataclasses import dataclass
from distkit.marshalling import register, marshal, unmarshal
from distkit.refs import ActorRef, ref_from_json

@register
@dataclass
class Hello:
    sender: ActorRef

ref = ActorRef("localhost:6000", 3)
assert unmarshal(marshal(Hello(ref))) == Hello(ref)
print(ref.uid())                  # "localhost:6000/3"
print(ref.to_json())              # {"Address":"localhost:6000","Counter":3}
assert ref_from_json(ref.to_json()) == ref
```

## Framing

`write_frame(sock, payload)` sends a 4-byte big-endian length and then the
payload. `read_frame(sock)` reads one frame back. It raises `EOFError` if
the stream ends part way through. Both work on any object with `sendall` /
`recv`, such as a socket.

## Actor contexts

An `ActorContext` is built with a system object and the actor's own
`ActorRef`. The system object must provide three methods:

- `is_local(ref)`
- `tell_from_actor(ref, message)`
- `tell_after_from_actor(ref, message, delay)`

The context forwards `tell` and `tell_after` to those methods and counts
each send. `max_message_rate()` reports the highest number of messages per
second sent to any single ref.

## What this package does not include

This package provides no actor system runtime. It has no mailboxes, no actor
threads and no TCP delivery between processes, so `ActorContext` needs a
system object that you supply. There is also no key-value server or client:
`distkit.kvcommon` defines only the message types and framing. The package
installs no command-line tools.