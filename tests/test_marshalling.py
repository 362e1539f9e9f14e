import collections
import datetime
import pickle
import threading
from dataclasses import dataclass

import pytest

from distkit.marshalling import MarshalError, marshal, register, unmarshal


@register
@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass
class Unregistered:
    value: int


@pytest.mark.parametrize(
    "message",
    [None, True, 7, 2.5, "text", b"raw", [1, 2, 3], (1, "a"), {"k": "v"}, {1, 2}, frozenset({3})],
)
def test_builtin_values_round_trip(message):
    assert unmarshal(marshal(message)) == message


def test_registered_class_round_trips():
    assert unmarshal(marshal(Point(3, 4))) == Point(3, 4)


def test_nested_registered_values_round_trip():
    message = {"points": [Point(1, 2), Point(5, 6)], "label": ("a", Point(0, 0))}
    assert unmarshal(marshal(message)) == message


def test_datetime_round_trips():
    stamp = datetime.datetime(2020, 5, 17, 12, 30, tzinfo=datetime.timezone.utc)
    assert unmarshal(marshal(stamp)) == stamp


def test_register_returns_the_class():
    assert register(Point) is Point


def test_register_rejects_non_class():
    with pytest.raises(TypeError):
        register(Point(1, 1))


def test_unregistered_class_is_refused():
    with pytest.raises(MarshalError):
        marshal(Unregistered(1))


def test_unregistered_class_nested_in_list_is_refused():
    with pytest.raises(MarshalError):
        marshal([1, Unregistered(2)])


def test_function_is_refused():
    with pytest.raises(MarshalError):
        marshal(lambda: None)


def test_lock_is_refused():
    with pytest.raises(MarshalError):
        marshal({"lock": threading.Lock()})


def test_unmarshal_refuses_unregistered_global():
    data = pickle.dumps(collections.OrderedDict(a=1))
    with pytest.raises(MarshalError):
        unmarshal(data)


def test_unmarshal_refuses_garbage():
    with pytest.raises(MarshalError):
        unmarshal(b"garbage")


def test_marshalled_copy_is_independent():
    original = {"items": [1, 2]}
    copy = unmarshal(marshal(original))
    copy["items"].append(3)
    assert original == {"items": [1, 2]}