from distkit.actor_context import ActorContext
from distkit.refs import ActorRef

LOCAL = "localhost:7000"


class _FakeSystem:
    def __init__(self):
        self.sent = []
        self.delayed = []

    def is_local(self, ref):
        return ref.address == LOCAL

    def tell_from_actor(self, ref, message):
        self.sent.append((ref, message))

    def tell_after_from_actor(self, ref, message, delay):
        self.delayed.append((ref, message, delay))


def _context():
    system = _FakeSystem()
    return system, ActorContext(system, ActorRef(LOCAL, 0))


def test_self_ref_is_exposed():
    _, context = _context()
    assert context.self_ref == ActorRef(LOCAL, 0)


def test_tell_forwards_to_the_system():
    system, context = _context()
    target = ActorRef(LOCAL, 1)
    context.tell(target, "hello")
    assert system.sent == [(target, "hello")]


def test_tell_after_forwards_delay():
    system, context = _context()
    target = ActorRef(LOCAL, 0)
    context.tell_after(target, "tick", 0.25)
    assert system.delayed == [(target, "tick", 0.25)]


def test_is_local_asks_the_system():
    _, context = _context()
    assert context.is_local(ActorRef(LOCAL, 5))
    assert not context.is_local(ActorRef("localhost:8000", 5))


def test_rate_is_zero_before_any_send():
    _, context = _context()
    assert context.max_message_rate() == 0.0


def test_rate_takes_the_busiest_recipient():
    _, context = _context()
    busy = ActorRef(LOCAL, 1)
    quiet = ActorRef(LOCAL, 2)
    for _ in range(3):
        context.tell(busy, "m")
    context.tell(quiet, "m")
    assert context.max_message_rate() == 3.0


def test_rate_counts_delayed_sends():
    _, context = _context()
    target = ActorRef(LOCAL, 1)
    context.tell_after(target, "a", 10)
    context.tell_after(target, "b", 10)
    assert context.max_message_rate() == 2.0