import pytest
from lark import UnexpectedInput

from heapmeter.declarations import DeclarationError, load_declarations
from heapmeter.internals.parser import improve_parse_error, parse_declarations
from heapmeter.introspection.accessors import DirectAccessor
from heapmeter.introspection.introspector import FieldIntrospector
from heapmeter.layout.contended import ContendedPadding
from heapmeter.layout.kinds import FieldKind
from heapmeter.layout.policies import PostReformPolicy, PreReformPolicy
from heapmeter.markers import class_contended

from conftest import NARROW

SOURCE = """
// accounts
class Base { long id; }
class Child extends Base { int count; }

@contended
class Hot {
    @contended("g") long a;
    @contended("g") long b;
    @unmetered Registry owner;   /* not measured */
    int[] samples;
}
"""

introspector = FieldIntrospector(DirectAccessor())


def fields_of(cls):
    return {f.name: f for f in introspector.declared_fields(cls)}


def test_classes_are_created_in_order():
    classes = load_declarations(SOURCE)
    assert list(classes) == ["Base", "Child", "Hot"]
    assert classes["Child"].__base__ is classes["Base"]
    assert classes["Child"].__slots__ == ("count",)
    assert classes["Base"].__module__ == "heapmeter.declared"


def test_field_kinds_and_markers():
    classes = load_declarations(SOURCE)
    assert fields_of(classes["Base"])["id"].kind is FieldKind.LONG
    assert fields_of(classes["Child"])["count"].kind is FieldKind.INT

    hot = fields_of(classes["Hot"])
    assert hot["a"].contended.tag == "g"
    assert hot["owner"].unmetered
    assert hot["owner"].kind is FieldKind.REFERENCE
    assert hot["samples"].kind is FieldKind.REFERENCE
    assert hot["samples"].contended is None
    assert class_contended(classes["Hot"]) is not None
    assert class_contended(classes["Base"]) is None


def test_declared_classes_are_sized_like_python_classes():
    classes = load_declarations(SOURCE)
    padding = ContendedPadding(128)
    blocks = introspector.class_blocks(classes["Child"])
    assert PreReformPolicy(NARROW, padding).instance_size(blocks) == 32
    assert PostReformPolicy(NARROW, padding).instance_size(blocks) == 24


def test_instances_can_be_created():
    classes = load_declarations(SOURCE)
    child = classes["Child"]()
    child.id = 1
    child.count = 2
    assert (child.id, child.count) == (1, 2)


@pytest.mark.parametrize("src, message", [
    ("class A extends B { }", "base class 'B'"),
    ("class A { }\nclass A { }", "declared twice"),
    ("class A { int x; long x; }", "field 'x'"),
])
def test_declaration_errors(src, message):
    with pytest.raises(DeclarationError, match=message):
        load_declarations(src)


def test_missing_semicolon_hint():
    with pytest.raises(UnexpectedInput) as info:
        parse_declarations("class A { long x }")
    assert "missing ';'" in improve_parse_error(info.value)


def test_dump_parse(capsys):
    parse_declarations("class A { }", dump_parse=True)
    assert "decl" in capsys.readouterr().out
