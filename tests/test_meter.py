import array
import enum
import io
import mmap
import platform
import weakref
from concurrent.futures import ThreadPoolExecutor
from typing import Annotated

import pytest

from heapmeter import Contended, Measurable, MeterListener, Outer, TreePrinter, Unmetered
from heapmeter.config import BufferMode
from heapmeter.layout.kinds import Int
from heapmeter.layout.probe import Environment
from heapmeter.internals.errors import FieldInaccessibleError
from heapmeter.introspection.accessors import CPythonSlotAccessor
from heapmeter.strategies import StrategyKind

from conftest import NARROW_ENV, WIDE_ENV, make_meter

on_cpython = pytest.mark.skipif(platform.python_implementation() != "CPython",
                                reason="reads CPython object memory")


class Node:
    __slots__ = ("next",)

    def __init__(self, next=None):
        self.next = next


class Pair:
    __slots__ = ("left", "right")

    def __init__(self, left=None, right=None):
        self.left = left
        self.right = right


class Color(enum.Enum):
    RED = 1


class Holder:
    __slots__ = ("kind", "color", "flag")


@Unmetered
class Registry:
    __slots__ = ()


class Owner:
    __slots__ = ("registry", "cache")
    registry: Registry
    cache: Annotated[list, Unmetered]


class Inner:
    __slots__ = ("outer", "value")
    outer: Annotated[object, Outer]


class Target:
    __slots__ = ("__weakref__",)


class Custom(Measurable):
    __slots__ = ("payload", "ignored")

    def __init__(self, payload, ignored):
        self.payload = payload
        self.ignored = ignored

    def add_children_to(self, stack):
        stack.push_object(self, "payload", self.payload)


class Plain:
    pass


class TwoInts:
    __slots__ = ("a", "b")
    a: Int
    b: Int


class Recorder(MeterListener):
    def __init__(self):
        self.events = []

    def started(self, root):
        self.events.append(("started", root))

    def field_added(self, parent, name, child):
        self.events.append(("field", name, child))

    def array_element_added(self, array, index, element):
        self.events.append(("element", index, element))

    def object_measured(self, obj, size):
        self.events.append(("measured", obj, size))

    def failed_to_access_field(self, obj, field_name, field_type):
        self.events.append(("failed", field_name, field_type))

    def done(self, total):
        self.events.append(("done", total))


def test_none_measures_zero(meter):
    assert meter.measure(None) == 0
    assert meter.measure_deep(None) == 0


def test_shallow_sizes(meter):
    assert meter.measure(Node()) == 16
    assert meter.measure(Pair()) == 24
    assert meter.measure(bytearray(1000)) == 1016


def test_wide_references():
    meter = make_meter(WIDE_ENV)
    # header 16 + one 8-byte reference
    assert meter.measure(Node()) == 24
    assert meter.measure([None] * 3) == 48


def test_deep_linked_list(meter):
    head = None
    for _ in range(100_000):
        head = Node(head)
    assert meter.measure_deep(head) == 100_000 * 16


def test_cycles_are_counted_once(meter):
    a = Node()
    b = Node(a)
    a.next = b
    assert meter.measure_deep(a) == 32


def test_shared_objects_are_counted_once(meter):
    node = Node()
    assert meter.measure_deep(Pair(node, node)) == 24 + 16


def test_known_singletons_are_skipped(meter):
    holder = Holder()
    holder.kind = int
    holder.color = Color.RED
    holder.flag = True
    assert meter.measure_deep(holder) == meter.measure(holder) == 24
    assert meter.measure_deep(Color.RED) == 0
    assert meter.measure_deep(int) == 0


def test_unmetered_classes_and_fields(meter):
    owner = Owner()
    owner.registry = Registry()
    owner.cache = [1, 2]
    assert meter.measure_deep(owner) == 24
    assert meter.measure_deep(Registry()) == 0


def test_unmetered_markers_can_be_disregarded():
    meter = make_meter(respect_unmetered_annotation=False)
    owner = Owner()
    owner.registry = Registry()
    owner.cache = [1, 2]
    # owner 24, registry 16, list 24, two ints 24 each
    assert meter.measure_deep(owner) == 24 + 16 + 24 + 48


def test_outer_reference():
    inner = Inner()
    inner.outer = Node()
    inner.value = None
    assert make_meter().measure_deep(inner) == 24 + 16
    assert make_meter(ignore_outer_reference=True).measure_deep(inner) == 24


def test_weak_references_are_non_owning_on_request():
    target = Target()
    ref = weakref.ref(target)
    assert make_meter().measure(ref) == 24
    assert make_meter().measure_deep(ref) == 24 + 16
    assert make_meter(ignore_non_owning_references=True).measure_deep(ref) == 24


def test_dead_weak_reference(meter):
    target = Target()
    ref = weakref.ref(target)
    del target
    assert meter.measure_deep(ref) == 24


def test_reference_array_elements(meter):
    node = Node()
    assert meter.measure_deep([node, node, None]) == 32 + 16
    # dict of one item: two references, the key "k" and the value
    assert meter.measure_deep({"k": node}) == 24 + 24 + 16


def test_primitive_arrays(meter):
    assert meter.measure_deep("abc") == 24
    assert meter.measure_deep("€") == 24
    assert meter.measure_deep(b"") == 16


def test_instance_dictionaries(meter):
    plain = Plain()
    plain.x = Node()
    # object 16, its dict 24, the key 24, the node 16
    assert meter.measure_deep(plain) == 16 + 24 + 24 + 16


def test_measure_array(meter):
    assert meter.measure_array(bytes(5)) == 24
    assert meter.measure_array([1, 2, 3]) == 32
    with pytest.raises(TypeError):
        meter.measure_array(Node())


def test_measurable_declares_its_children(meter):
    custom = Custom(bytes(10), [Node() for _ in range(10)])
    assert meter.measure_deep(custom) == 24 + 32


@pytest.mark.parametrize("mode, expected", [
    (BufferMode.NORMAL, 1056),
    (BufferMode.OMIT_SHARED_OVERHEAD, 940),
    (BufferMode.SHALLOW_ONLY, 40),
    (BufferMode.HEAP_ONLY_NO_SLICE, 900),
])
def test_shared_buffer_modes_on_a_slice(mode, expected):
    buffer = bytearray(1000)
    view = memoryview(buffer)[100:]
    assert make_meter().measure(view) == 40
    assert make_meter(shared_buffer_mode=mode).measure_deep(view) == expected


def test_heap_only_counts_whole_buffers():
    view = memoryview(bytearray(1000))
    meter = make_meter(shared_buffer_mode=BufferMode.HEAP_ONLY_NO_SLICE)
    assert meter.measure_deep(view) == 1056


def test_heap_only_skips_off_heap_buffers():
    mapped = mmap.mmap(-1, 4096)
    view = memoryview(mapped)
    try:
        meter = make_meter(shared_buffer_mode=BufferMode.HEAP_ONLY_NO_SLICE)
        assert meter.measure_deep(view) == 40
    finally:
        view.release()
        mapped.close()


def test_listener_sees_every_step():
    recorder = Recorder()
    meter = make_meter(listener_factory=lambda: recorder)
    node = Node()
    root = Pair(node, [node])
    total = meter.measure_deep(root)

    assert recorder.events[0] == ("started", root)
    assert ("field", "left", node) in recorder.events
    assert ("field", "right", root.right) in recorder.events
    assert not any(e[0] == "element" for e in recorder.events)
    assert sum(e[2] for e in recorder.events if e[0] == "measured") == total
    assert recorder.events[-1] == ("done", total)


def test_listener_sees_array_elements():
    recorder = Recorder()
    node = Node()
    make_meter(listener_factory=lambda: recorder).measure_deep([None, node])
    assert ("element", 1, node) in recorder.events


def test_tree_printer_output():
    out = io.StringIO()
    meter = make_meter(listener_factory=TreePrinter.factory(5, out=out))
    meter.measure_deep(Node(Node()))
    lines = out.getvalue().splitlines()
    assert lines[1] == "root [test_meter.Node] 32 bytes (16 bytes)"
    assert lines[2] == "  |"
    assert lines[3] == "  +--next [test_meter.Node] 16 bytes (16 bytes)"


def test_tree_printer_hides_totals_past_its_depth():
    out = io.StringIO()
    meter = make_meter(listener_factory=TreePrinter.factory(1, out=out))
    meter.measure_deep(Node(Node(Node())))
    text = out.getvalue()
    assert "root [test_meter.Node] (16 bytes)" in text
    assert "48 bytes" not in text


def test_debug_depth_prints_the_tree(capsys):
    make_meter(debug_depth=2).measure_deep(Node())
    assert "root [test_meter.Node]" in capsys.readouterr().out


def make_hidden_class():
    class Hidden:
        __slots__ = ("secret",)

    return Hidden


def test_unreadable_field_fails():
    Hidden = make_hidden_class()
    hidden = Hidden()
    hidden.secret = Node()
    del Hidden.secret
    recorder = Recorder()
    meter = make_meter(listener_factory=lambda: recorder)
    with pytest.raises(FieldInaccessibleError) as info:
        meter.measure_deep(hidden)
    assert info.value.code == "HM0201"
    assert ("failed", "secret", object) in recorder.events


@on_cpython
def test_unreadable_field_is_read_by_offset():
    Hidden = make_hidden_class()
    hidden = Hidden()
    hidden.secret = Node()
    del Hidden.secret
    meter = make_meter(offset_accessor=CPythonSlotAccessor())
    assert meter.measure_deep(hidden) == 16 + 16


def test_concurrent_measurements_are_independent(meter):
    def build(length):
        head = None
        for _ in range(length):
            head = Node(head)
        return head

    graphs = [build(n) for n in range(1, 200)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        sizes = list(pool.map(meter.measure_deep, graphs))
    assert sizes == [n * 16 for n in range(1, 200)]


def test_meter_warns_when_empty_slot_reuse_is_disabled(caplog):
    env = Environment(use_empty_slots_in_supers=False)
    meter = make_meter(env)
    assert "empty-slot reuse is disabled" in caplog.text
    assert meter.policy.name == "pre-reform (empty slots disabled)"


def test_contended_padding_follows_the_environment():
    class Counter:
        __slots__ = ("hits",)
        hits: Annotated[int, Contended()]

    # trusted padding only: the test class is left unpadded
    assert make_meter(WIDE_ENV).measure(Counter()) == 24
    # header 12 + reference 4 + two pads
    assert make_meter().measure(Counter()) == 12 + 4 + 256


@on_cpython
def test_host_offsets_are_only_used_for_the_host_layout():
    order = ("hybrid", "offset-probing", "layout-computed")
    narrow = make_meter(order=order, offset_accessor=CPythonSlotAccessor())
    assert narrow.strategy.kind is StrategyKind.LAYOUT_COMPUTED
    wide = make_meter(WIDE_ENV, order=order, offset_accessor=CPythonSlotAccessor())
    if object.__basicsize__ == 16:
        assert wide.strategy.kind is StrategyKind.OFFSET_PROBING
    assert wide.measure(TwoInts()) == 24
    assert narrow.measure(TwoInts()) == 24


class Squad(list):
    __slots__ = ()

    def __iter__(self):
        raise RuntimeError("__iter__ called")

    def __len__(self):
        raise RuntimeError("__len__ called")


class Ledger(dict):
    __slots__ = ()

    def items(self):
        raise RuntimeError("items called")

    def __iter__(self):
        raise RuntimeError("__iter__ called")

    def __len__(self):
        raise RuntimeError("__len__ called")


class Label(str):
    __slots__ = ()

    def __iter__(self):
        raise RuntimeError("__iter__ called")

    def __len__(self):
        raise RuntimeError("__len__ called")


def test_container_overrides_are_never_called(meter):
    node = Node()
    # two references, shared node
    assert meter.measure_deep(Squad([node, node])) == 24 + 16
    # key "k" and value
    assert meter.measure_deep(Ledger(k=node)) == 24 + 24 + 16
    assert meter.measure_deep(Label("abc")) == 24


def test_instance_dict_is_built_when_read(meter):
    plain = Plain()
    # object 16, the empty dict 16
    assert meter.measure_deep(plain) == 16 + 16
    assert vars(plain) == {}


def build_graph():
    shared = Node()
    plain = Plain()
    plain.items = [shared, "text", {"key": shared}]
    head = Node(Node(shared))
    shared.next = head
    return Pair(head, plain)


@pytest.mark.parametrize("env", [NARROW_ENV, WIDE_ENV])
def test_measure_deep_is_idempotent(env):
    meter = make_meter(env)
    graph = build_graph()
    first = meter.measure_deep(graph)
    assert first > 0
    assert meter.measure_deep(graph) == first
    assert meter.measure_deep(graph) == first


@pytest.mark.parametrize("length", [0, 1, 256])
@pytest.mark.parametrize("make, width", [
    (bytes, 1),
    (lambda n: array.array("H", bytes(2 * n)), 2),
    (lambda n: array.array("f", bytes(4 * n)), 4),
    (lambda n: array.array("d", bytes(8 * n)), 8),
    (lambda n: [None] * n, None),
])
@pytest.mark.parametrize("env", [NARROW_ENV, WIDE_ENV])
def test_arrays_follow_the_formula(env, make, width, length):
    meter = make_meter(env)
    spec = meter.spec
    if width is None:
        width = spec.reference_width
    expected = -(-(spec.array_header_width + length * width) // spec.alignment_quantum) * spec.alignment_quantum
    assert meter.measure(make(length)) == expected
