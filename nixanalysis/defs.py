"""The lowered representation of a Nix file: expressions, names and source maps."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Sequence, Union

from .base import TextRange
from .diagnostic import Diagnostic
from .path import PathData

ExprId = int
NameId = int
Attrpath = tuple  # tuple[ExprId, ...]


def _freeze(obj: object, attr: str) -> None:
    object.__setattr__(obj, attr, tuple(getattr(obj, attr)))


@dataclass(frozen=True)
class AstPtr:
    """A pointer to a syntax node: its kind and text range."""

    kind: str
    range: TextRange


class NameKind(Enum):
    LET_IN = "let_in"
    PLAIN_ATTRSET = "plain_attrset"
    REC_ATTRSET = "rec_attrset"
    PARAM = "param"
    PAT_FIELD = "pat_field"

    def is_definition(self) -> bool:
        """Whether the name introduces a binding visible to references."""
        return self is not NameKind.PLAIN_ATTRSET


@dataclass(frozen=True)
class Name:
    text: str
    kind: NameKind


@dataclass(frozen=True)
class IntLiteral:
    value: int


@dataclass(frozen=True)
class FloatLiteral:
    value: float


@dataclass(frozen=True)
class StringLiteral:
    value: str


@dataclass(frozen=True)
class PathLiteral:
    path: PathData


Literal = Union[IntLiteral, FloatLiteral, StringLiteral, PathLiteral]


@dataclass(frozen=True)
class ExprValue:
    """A binding whose value is an expression."""

    expr: ExprId


@dataclass(frozen=True)
class Inherit:
    """`inherit name;`: the value is a reference expression."""

    expr: ExprId


@dataclass(frozen=True)
class InheritFrom:
    """`inherit (from) name;`: the value indexes `Bindings.inherit_froms`."""

    index: int


BindingValue = Union[ExprValue, Inherit, InheritFrom]


@dataclass(frozen=True)
class Pat:
    """A `{ a, b ? default, ... }` parameter pattern."""

    fields: tuple[tuple[Optional[NameId], Optional[ExprId]], ...] = ()
    ellipsis: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(tuple(f) for f in self.fields))


@dataclass(frozen=True)
class Bindings:
    statics: tuple[tuple[NameId, BindingValue], ...] = ()
    inherit_froms: tuple[ExprId, ...] = ()
    dynamics: tuple[tuple[ExprId, ExprId], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "statics", tuple(tuple(s) for s in self.statics))
        _freeze(self, "inherit_froms")
        object.__setattr__(self, "dynamics", tuple(tuple(d) for d in self.dynamics))

    def child_exprs(self) -> Iterator[ExprId]:
        """Directly contained expressions, in source order of kind."""
        for _, value in self.statics:
            if isinstance(value, (ExprValue, Inherit)):
                yield value.expr
        yield from self.inherit_froms
        for key, value in self.dynamics:
            yield key
            yield value

    def get(self, name: str, module: Module) -> BindingValue | None:
        """The value of the static binding named `name`, if any."""
        return next(
            (value for name_id, value in self.statics if module.name(name_id).text == name),
            None,
        )


@dataclass(frozen=True)
class Missing:
    pass


@dataclass(frozen=True)
class Reference:
    name: str


@dataclass(frozen=True)
class LiteralExpr:
    literal: Literal


@dataclass(frozen=True)
class Lambda:
    param: Optional[NameId]
    pat: Optional[Pat]
    body: ExprId


@dataclass(frozen=True)
class With:
    env: ExprId
    body: ExprId


@dataclass(frozen=True)
class Assert:
    cond: ExprId
    body: ExprId


@dataclass(frozen=True)
class IfThenElse:
    cond: ExprId
    then_body: ExprId
    else_body: ExprId


@dataclass(frozen=True)
class Binary:
    op: Optional[str]
    lhs: ExprId
    rhs: ExprId


@dataclass(frozen=True)
class Apply:
    func: ExprId
    arg: ExprId


@dataclass(frozen=True)
class Unary:
    op: Optional[str]
    arg: ExprId


@dataclass(frozen=True)
class HasAttr:
    set: ExprId
    attrpath: tuple[ExprId, ...]

    def __post_init__(self) -> None:
        _freeze(self, "attrpath")


@dataclass(frozen=True)
class Select:
    set: ExprId
    attrpath: tuple[ExprId, ...]
    default: Optional[ExprId] = None

    def __post_init__(self) -> None:
        _freeze(self, "attrpath")


@dataclass(frozen=True)
class StringInterpolation:
    parts: tuple[ExprId, ...]

    def __post_init__(self) -> None:
        _freeze(self, "parts")


@dataclass(frozen=True)
class PathInterpolation:
    parts: tuple[ExprId, ...]

    def __post_init__(self) -> None:
        _freeze(self, "parts")


@dataclass(frozen=True)
class ListExpr:
    elements: tuple[ExprId, ...]

    def __post_init__(self) -> None:
        _freeze(self, "elements")


@dataclass(frozen=True)
class LetIn:
    bindings: Bindings
    body: ExprId


@dataclass(frozen=True)
class Attrset:
    bindings: Bindings


@dataclass(frozen=True)
class LetAttrset:
    bindings: Bindings


@dataclass(frozen=True)
class RecAttrset:
    bindings: Bindings


Expr = Union[
    Missing,
    Reference,
    LiteralExpr,
    Lambda,
    With,
    Assert,
    IfThenElse,
    Binary,
    Apply,
    Unary,
    HasAttr,
    Select,
    StringInterpolation,
    PathInterpolation,
    ListExpr,
    LetIn,
    Attrset,
    LetAttrset,
    RecAttrset,
]


def child_exprs(expr: Expr) -> Iterator[ExprId]:
    """The expressions directly contained in `expr`, in evaluation-walk order."""
    if isinstance(expr, (Missing, Reference, LiteralExpr)):
        return
    if isinstance(expr, Lambda):
        if expr.pat is not None:
            yield from (default for _, default in expr.pat.fields if default is not None)
        yield expr.body
    elif isinstance(expr, Unary):
        yield expr.arg
    elif isinstance(expr, Assert):
        yield from (expr.cond, expr.body)
    elif isinstance(expr, With):
        yield from (expr.env, expr.body)
    elif isinstance(expr, Binary):
        yield from (expr.lhs, expr.rhs)
    elif isinstance(expr, Apply):
        yield from (expr.func, expr.arg)
    elif isinstance(expr, IfThenElse):
        yield from (expr.cond, expr.then_body, expr.else_body)
    elif isinstance(expr, HasAttr):
        yield expr.set
        yield from expr.attrpath
    elif isinstance(expr, Select):
        yield expr.set
        yield from expr.attrpath
        if expr.default is not None:
            yield expr.default
    elif isinstance(expr, (StringInterpolation, PathInterpolation)):
        yield from expr.parts
    elif isinstance(expr, ListExpr):
        yield from expr.elements
    elif isinstance(expr, LetIn):
        yield from expr.bindings.child_exprs()
        yield expr.body
    elif isinstance(expr, (Attrset, RecAttrset, LetAttrset)):
        yield from expr.bindings.child_exprs()
    else:
        raise TypeError(f"not an expression: {expr!r}")


def _lookup(items: list, index: int, what: str):
    if not isinstance(index, int) or index < 0 or index >= len(items):
        raise IndexError(f"no {what} with id {index!r}")
    return items[index]


class Module:
    """The arenas of expressions and names of one file, plus its entry expression."""

    def __init__(self, entry_expr: ExprId = 0) -> None:
        self._exprs: list[Expr] = []
        self._names: list[Name] = []
        self.entry_expr = entry_expr

    def alloc_expr(self, expr: Expr) -> ExprId:
        self._exprs.append(expr)
        return len(self._exprs) - 1

    def alloc_name(self, name: Name) -> NameId:
        self._names.append(name)
        return len(self._names) - 1

    def expr(self, expr_id: ExprId) -> Expr:
        return _lookup(self._exprs, expr_id, "expression")

    def name(self, name_id: NameId) -> Name:
        return _lookup(self._names, name_id, "name")

    def exprs(self) -> Iterator[tuple[ExprId, Expr]]:
        return enumerate(list(self._exprs))

    def names(self) -> Iterator[tuple[NameId, Name]]:
        return enumerate(list(self._names))

    def __len__(self) -> int:
        return len(self._exprs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Module):
            return NotImplemented
        return (self._exprs, self._names, self.entry_expr) == (
            other._exprs,
            other._names,
            other.entry_expr,
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Module(exprs={len(self._exprs)}, names={len(self._names)}, "
            f"entry_expr={self.entry_expr})"
        )


class ModuleSourceMap:
    """Links between syntax nodes and lowered ids, plus lowering diagnostics."""

    def __init__(self) -> None:
        self._expr_map: dict[AstPtr, ExprId] = {}
        self._expr_map_rev: dict[ExprId, AstPtr] = {}
        self._name_map: dict[AstPtr, NameId] = {}
        self._name_map_rev: dict[NameId, list[AstPtr]] = {}
        self._diagnostics: list[Diagnostic] = []

    def insert_expr(self, ptr: AstPtr, expr_id: ExprId) -> None:
        self._expr_map[ptr] = expr_id
        self._expr_map_rev[expr_id] = ptr

    def insert_name(self, ptr: AstPtr, name_id: NameId) -> None:
        """Record `ptr` as one more location of `name_id`."""
        self._name_map[ptr] = name_id
        self._name_map_rev.setdefault(name_id, []).append(ptr)

    def expr_for_node(self, node: AstPtr) -> ExprId | None:
        return self._expr_map.get(node)

    def node_for_expr(self, expr_id: ExprId) -> AstPtr | None:
        return self._expr_map_rev.get(expr_id)

    def name_for_node(self, node: AstPtr) -> NameId | None:
        return self._name_map.get(node)

    def nodes_for_name(self, name_id: NameId) -> Iterator[AstPtr]:
        """Every location of `name_id`, the first definition first."""
        return iter(list(self._name_map_rev.get(name_id, ())))

    def add_diagnostic(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)

    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(self._diagnostics)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModuleSourceMap):
            return NotImplemented
        return (
            self._expr_map == other._expr_map
            and self._name_map_rev == other._name_map_rev
            and self._diagnostics == other._diagnostics
        )

    __hash__ = None  # type: ignore[assignment]


__all__: Sequence[str] = (
    "AstPtr",
    "NameKind",
    "Name",
    "IntLiteral",
    "FloatLiteral",
    "StringLiteral",
    "PathLiteral",
    "ExprValue",
    "Inherit",
    "InheritFrom",
    "Pat",
    "Bindings",
    "Missing",
    "Reference",
    "LiteralExpr",
    "Lambda",
    "With",
    "Assert",
    "IfThenElse",
    "Binary",
    "Apply",
    "Unary",
    "HasAttr",
    "Select",
    "StringInterpolation",
    "PathInterpolation",
    "ListExpr",
    "LetIn",
    "Attrset",
    "LetAttrset",
    "RecAttrset",
    "child_exprs",
    "Module",
    "ModuleSourceMap",
)