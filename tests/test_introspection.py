import array
import collections
from typing import Annotated, ClassVar

import pytest

from heapmeter.internals.errors import FieldInaccessibleError
from heapmeter.introspection.accessors import DirectAccessor
from heapmeter.introspection.fields import (
    FieldStorage,
    declared_fields,
    hierarchy,
    mangle,
    own_slot_names,
)
from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.introspection.shapes import ShapeKind, buffer_capacity, shape_of, str_char_width
from heapmeter.layout.kinds import FieldKind, Int, Long
from heapmeter.markers import Contended, Outer, Unmetered, class_contended, is_unmetered_class

introspector = FieldIntrospector(DirectAccessor())


class Secret:
    __slots__ = ("__key", "__weakref__", "plain")
    __key: Long


class WithClassVar:
    __slots__ = ("a",)
    a: Int
    instances: ClassVar[int] = 0


class WithDict:
    __slots__ = ("a", "__dict__")


class Plain:
    pass


class SubPlain(Plain):
    pass


class Left:
    pass


class Right:
    pass


class Both(Left, Right):
    pass


class Unresolved:
    __slots__ = ("x",)
    x: "Missing"  # noqa: F821


class Marked:
    __slots__ = ("owner", "parent", "hot")
    owner: Annotated[list, Unmetered]
    parent: Annotated[object, Outer]
    hot: Annotated[Long, Contended("g")]


@Unmetered
class Service:
    pass


class Mixin:
    pass


class Handler(Mixin, Service):
    pass


@Contended("all")
class Hot:
    __slots__ = ()


class Warm(Hot):
    __slots__ = ()


def test_mangle():
    assert mangle(Secret, "__key") == "_Secret__key"
    assert mangle(Secret, "__init__") == "__init__"
    assert mangle(Secret, "plain") == "plain"


def test_own_slot_names_skip_special_slots():
    assert own_slot_names(Secret) == ("_Secret__key", "plain")


def test_private_slot_annotation():
    fields = {f.name: f for f in declared_fields(Secret)}
    assert fields["_Secret__key"].kind is FieldKind.LONG
    assert fields["plain"].kind is FieldKind.REFERENCE


def test_class_variables_are_not_fields():
    assert [f.name for f in declared_fields(WithClassVar)] == ["a"]


def test_instance_dict_field():
    fields = declared_fields(WithDict)
    assert [f.name for f in fields] == ["a", "__dict__"]
    assert fields[1].storage is FieldStorage.INSTANCE_DICT
    assert declared_fields(SubPlain) == ()


def test_instance_dict_is_counted_once_per_object():
    dicts = [f for f in introspector.all_fields(Both) if f.storage is FieldStorage.INSTANCE_DICT]
    assert len(dicts) == 1


def test_unresolved_annotations_are_references():
    assert declared_fields(Unresolved)[0].kind is FieldKind.REFERENCE


def test_markers_on_fields():
    fields = {f.name: f for f in declared_fields(Marked)}
    assert fields["owner"].unmetered and fields["owner"].declared_type is list
    assert fields["parent"].outer
    assert fields["hot"].contended == Contended("g")
    assert fields["hot"].is_primitive


def test_builtin_fields():
    kinds = [f.kind for f in declared_fields(complex)]
    assert kinds == [FieldKind.DOUBLE, FieldKind.DOUBLE]
    assert [f.storage for f in declared_fields(int)] == [FieldStorage.BUILTIN]


def test_released_view_has_no_backing_store():
    view = memoryview(b"abc")
    backing = declared_fields(memoryview)[0]
    assert backing.reader(view) == b"abc"
    view.release()
    assert backing.reader(view) is None


def test_hierarchy_is_root_first():
    assert hierarchy(Both) == (Right, Left, Both)


def test_read_slots():
    secret = Secret()
    fields = {f.name: f for f in introspector.declared_fields(Secret)}
    assert introspector.read(secret, fields["plain"]) is None
    secret.plain = "p"
    assert introspector.read(secret, fields["plain"]) == "p"


def test_read_never_runs_properties():
    class Tricky:
        __slots__ = ("value",)

    field = introspector.declared_fields(Tricky)[0]
    Tricky.value = property(lambda self: 1 / 0)
    with pytest.raises(FieldInaccessibleError):
        introspector.read(Tricky(), field)


def test_unmetered_is_inherited_through_mixins():
    assert is_unmetered_class(Service)
    assert is_unmetered_class(Handler)
    assert not is_unmetered_class(Mixin)


def test_class_contended_is_not_inherited():
    assert class_contended(Hot) == Contended("all")
    assert class_contended(Warm) is None


def test_str_char_width():
    assert str_char_width("") == 1
    assert str_char_width("abc") == 1
    assert str_char_width("é") == 1
    assert str_char_width("€") == 2
    assert str_char_width("🙂") == 4


@pytest.mark.parametrize("obj, kind, length, width", [
    ([1, 2], ShapeKind.REFERENCE_ARRAY, 2, None),
    ((1,), ShapeKind.REFERENCE_ARRAY, 1, None),
    ({1, 2, 3}, ShapeKind.REFERENCE_ARRAY, 3, None),
    (collections.deque([1]), ShapeKind.REFERENCE_ARRAY, 1, None),
    ({"a": 1, "b": 2}, ShapeKind.REFERENCE_ARRAY, 4, None),
    (array.array("d", [1.0, 2.0]), ShapeKind.PRIMITIVE_ARRAY, 2, 8),
    ("€€", ShapeKind.PRIMITIVE_ARRAY, 2, 2),
    (bytearray(3), ShapeKind.PRIMITIVE_ARRAY, 3, 1),
    (object(), ShapeKind.INSTANCE, 0, None),
])
def test_shapes(obj, kind, length, width):
    shape = shape_of(obj)
    assert (shape.kind, shape.length, shape.element_width) == (kind, length, width)


def test_buffer_capacity():
    assert buffer_capacity(memoryview(bytearray(10))[2:]) == 10
    assert buffer_capacity(memoryview(array.array("i", [1, 2]))) == 2 * array.array("i").itemsize
