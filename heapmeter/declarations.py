"""
Type declarations turned into measurable classes.

Declarations describe a class hierarchy independently of Python code::

    class Base { long id; }
    class Child extends Base { int count; @contended("g") long hits; }

``build_declarations`` walks the parse tree into TypeDecl nodes and
``materialize`` creates one slotted class per declaration, with the field
kinds and markers carried by ``Annotated`` slot annotations.
"""
from __future__ import annotations

import ast
import types
from dataclasses import dataclass, field
from typing import Annotated, Optional

from lark import Token, Tree

from heapmeter.internals.parser import parse_declarations
from heapmeter.layout.kinds import FieldKind
from heapmeter.markers import Contended, Unmetered

DECLARED_MODULE = "heapmeter.declared"


@dataclass
class FieldDecl:
    name: str
    type_name: str
    is_array: bool = False
    contended: Optional[Contended] = None
    unmetered: bool = False

    @property
    def kind(self) -> FieldKind:
        if self.is_array:
            return FieldKind.REFERENCE
        return FieldKind.from_keyword(self.type_name)


@dataclass
class TypeDecl:
    name: str
    base: Optional[str] = None
    fields: list[FieldDecl] = field(default_factory=list)
    contended: bool = False
    line: int = 0


class DeclarationError(ValueError):
    pass


def _contended(node: Tree) -> Contended:
    tags = [child for child in node.children if isinstance(child, Token)]
    return Contended(ast.literal_eval(tags[0]) if tags else "")


def _field(node: Tree) -> FieldDecl:
    contended: Optional[Contended] = None
    unmetered = False
    type_name = ""
    is_array = False
    names = []
    for child in node.children:
        if isinstance(child, Tree) and child.data == "marker":
            marker = child.children[0]
            if isinstance(marker, Tree) and marker.data == "contended":
                contended = _contended(marker)
            else:
                unmetered = True
        elif isinstance(child, Tree) and child.data == "type_name":
            type_name = str(child.children[0])
            is_array = any(isinstance(t, Token) and t.type == "ARRAY" for t in child.children)
        elif isinstance(child, Token):
            names.append(str(child))
    return FieldDecl(names[0], type_name, is_array, contended, unmetered)


def build_declarations(tree: Tree) -> list[TypeDecl]:
    decls = []
    for node in tree.children:
        decl = TypeDecl(name="")
        names = []
        for child in node.children:
            if isinstance(child, Token):
                names.append(str(child))
            elif child.data == "contended":
                decl.contended = True
            elif child.data == "field":
                decl.fields.append(_field(child))
        decl.name = names[0]
        decl.base = names[1] if len(names) > 1 else None
        decl.line = getattr(node.meta, "line", 0)
        decls.append(decl)
    return decls


def _annotation(f: FieldDecl):
    metadata: list = [f.kind]
    if f.contended is not None:
        metadata.append(f.contended)
    if f.unmetered:
        metadata.append(Unmetered)
    return Annotated[(object, *metadata)]


def materialize(decls: list[TypeDecl]) -> dict[str, type]:
    """Create one slotted class per declaration, bases first.

    Raises:
        DeclarationError: on an unknown base or duplicate names.
    """
    classes: dict[str, type] = {}
    for decl in decls:
        if decl.name in classes:
            raise DeclarationError(f"line {decl.line}: class '{decl.name}' is declared twice")
        if decl.base is not None and decl.base not in classes:
            raise DeclarationError(f"line {decl.line}: base class '{decl.base}' of '{decl.name}' "
                                   "must be declared before it")
        seen = set()
        for f in decl.fields:
            if f.name in seen:
                raise DeclarationError(f"line {decl.line}: field '{f.name}' of '{decl.name}' is declared twice")
            seen.add(f.name)

        namespace = {
            "__slots__": tuple(f.name for f in decl.fields),
            "__annotations__": {f.name: _annotation(f) for f in decl.fields},
            "__module__": DECLARED_MODULE,
        }
        bases = (classes[decl.base],) if decl.base is not None else ()
        cls = types.new_class(decl.name, bases, {}, lambda ns: ns.update(namespace))
        if decl.contended:
            cls = Contended()(cls)
        classes[decl.name] = cls
    return classes


def load_declarations(src: str) -> dict[str, type]:
    """Parse ``src`` and materialize its classes."""
    return materialize(build_declarations(parse_declarations(src)))
