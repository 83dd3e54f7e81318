"""Scopes, name resolution and reverse name references of a lowered module."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import AbstractSet, Iterator, Mapping, Union

from .builtins import Builtin
from .defs import (
    Attrset,
    Bindings,
    ExprId,
    ExprValue,
    Inherit,
    InheritFrom,
    Lambda,
    LetAttrset,
    LetIn,
    Module,
    ModuleSourceMap,
    NameId,
    RecAttrset,
    Reference,
    With,
    child_exprs,
)
from .diagnostic import Diagnostic, DiagnosticKind

ScopeId = int


@dataclass(frozen=True)
class ScopeData:
    """One scope: either a set of definitions or a `with` expression."""

    parent: ScopeId | None
    definitions: Mapping[str, NameId] | None = None
    with_expr: ExprId | None = None

    def __post_init__(self) -> None:
        if (self.definitions is None) == (self.with_expr is None):
            raise ValueError("a scope holds either definitions or a `with` expression")
        if self.definitions is not None:
            object.__setattr__(self, "definitions", MappingProxyType(dict(self.definitions)))

    def as_definitions(self) -> Mapping[str, NameId] | None:
        return self.definitions

    def as_with(self) -> ExprId | None:
        return self.with_expr


@dataclass(frozen=True)
class Definition:
    """A reference to a defined name."""

    name: NameId


@dataclass(frozen=True)
class BuiltinRef:
    """A reference to a global builtin."""

    name: str


@dataclass(frozen=True)
class WithExprs:
    """An attribute of one of some `with` expressions, innermost first."""

    exprs: tuple[ExprId, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "exprs", tuple(self.exprs))
        if not self.exprs:
            raise ValueError("a `with` resolution needs at least one expression")


ResolveResult = Union[Definition, BuiltinRef, WithExprs]

_Pending = list[tuple[ExprId, ScopeId]]


class ModuleScopes:
    """The scope tree of a module and the scope of every reachable expression."""

    def __init__(self) -> None:
        self._scopes: list[ScopeData] = []
        self._scope_by_expr: dict[ExprId, ScopeId] = {}

    @classmethod
    def build(cls, module: Module) -> ModuleScopes:
        this = cls()
        root = this._alloc(ScopeData(None, definitions={}))
        stack: _Pending = [(module.entry_expr, root)]
        while stack:
            expr_id, scope = stack.pop()
            this._scope_by_expr[expr_id] = scope
            # Reverse so that children are visited in their natural order.
            stack.extend(reversed(this._visit(module, expr_id, scope)))
        return this

    def _alloc(self, data: ScopeData) -> ScopeId:
        self._scopes.append(data)
        return len(self._scopes) - 1

    def _visit(self, module: Module, expr_id: ExprId, scope: ScopeId) -> _Pending:
        expr = module.expr(expr_id)
        if isinstance(expr, Lambda):
            defs: dict[str, NameId] = {}
            if expr.param is not None:
                defs[module.name(expr.param).text] = expr.param
            if expr.pat is not None:
                for name_id, _ in expr.pat.fields:
                    if name_id is not None:
                        defs[module.name(name_id).text] = name_id
            if defs:
                scope = self._alloc(ScopeData(scope, definitions=defs))
            pending: _Pending = []
            if expr.pat is not None:
                pending.extend(
                    (default, scope) for _, default in expr.pat.fields if default is not None
                )
            pending.append((expr.body, scope))
            return pending
        if isinstance(expr, With):
            inner = self._alloc(ScopeData(scope, with_expr=expr_id))
            return [(expr.env, scope), (expr.body, inner)]
        if isinstance(expr, (Attrset, RecAttrset, LetAttrset)):
            pending, _ = self._visit_bindings(module, expr.bindings, scope)
            return pending
        if isinstance(expr, LetIn):
            pending, inner = self._visit_bindings(module, expr.bindings, scope)
            pending.append((expr.body, inner))
            return pending
        return [(child, scope) for child in child_exprs(expr)]

    def _visit_bindings(
        self, module: Module, bindings: Bindings, scope: ScopeId
    ) -> tuple[_Pending, ScopeId]:
        defs: dict[str, NameId] = {}
        pending: _Pending = []
        for name_id, value in bindings.statics:
            name = module.name(name_id)
            if name.kind.is_definition():
                defs[name.text] = name_id
            # Inherited attrs are resolved in the outer scope.
            if isinstance(value, Inherit):
                if not isinstance(module.expr(value.expr), Reference):
                    raise ValueError(f"inherited value {value.expr} is not a reference")
                pending.append((value.expr, scope))

        inner = self._alloc(ScopeData(scope, definitions=defs)) if defs else scope

        pending.extend(
            (value.expr, inner) for _, value in bindings.statics if isinstance(value, ExprValue)
        )
        pending.extend((e, inner) for e in bindings.inherit_froms)
        for key, value in bindings.dynamics:
            pending.append((key, inner))
            pending.append((value, inner))
        return pending, inner

    def __getitem__(self, scope_id: ScopeId) -> ScopeData:
        if scope_id < 0:
            raise IndexError(f"no scope with id {scope_id}")
        return self._scopes[scope_id]

    def __len__(self) -> int:
        return len(self._scopes)

    def scope_for_expr(self, expr_id: ExprId) -> ScopeId | None:
        return self._scope_by_expr.get(expr_id)

    def ancestors(self, scope_id: ScopeId) -> Iterator[ScopeData]:
        """The scope itself and then every enclosing scope, up to the root."""
        current: ScopeId | None = scope_id
        while current is not None:
            data = self[current]
            yield data
            current = data.parent

    def resolve_name(
        self, expr_id: ExprId, name: str, builtins: Mapping[str, Builtin]
    ) -> ResolveResult | None:
        """Resolve `name` as seen from the scope of `expr_id`."""
        scope = self.scope_for_expr(expr_id)
        if scope is None:
            return None
        # 1. Local definitions.
        for data in self.ancestors(scope):
            defs = data.as_definitions()
            if defs is not None and name in defs:
                return Definition(defs[name])
        # 2. Global builtin names.
        builtin = builtins.get(name)
        if builtin is not None and builtin.is_global:
            return BuiltinRef(name)
        # 3. Enclosing `with` expressions.
        withs = tuple(
            data.with_expr for data in self.ancestors(scope) if data.with_expr is not None
        )
        if withs:
            return WithExprs(withs)
        return None


class NameResolution:
    """The resolution of every reference expression of a module."""

    def __init__(
        self,
        resolve_map: Mapping[ExprId, ResolveResult | None],
        inherited_builtins: AbstractSet[NameId],
        builtin_names: AbstractSet[str],
    ) -> None:
        # `None` marks an unresolved reference.
        self._resolve_map = dict(resolve_map)
        self._inherited_builtins = frozenset(inherited_builtins)
        self._builtin_names = frozenset(builtin_names)

    @classmethod
    def build(
        cls, module: Module, scopes: ModuleScopes, builtins: Mapping[str, Builtin]
    ) -> NameResolution:
        resolve_map = {
            e: scopes.resolve_name(e, expr.name, builtins)
            for e, expr in module.exprs()
            if isinstance(expr, Reference)
        }

        # Names from the common pattern `inherit (builtins) ...`, so that
        # builtins can be tracked through such aliases.
        inherited: set[NameId] = set()
        for _, expr in module.exprs():
            # Only bindings that define names are considered.
            if not isinstance(expr, (LetIn, LetAttrset, RecAttrset)):
                continue
            bindings = expr.bindings
            for name_id, value in bindings.statics:
                if not isinstance(value, InheritFrom):
                    continue
                from_expr = bindings.inherit_froms[value.index]
                if resolve_map.get(from_expr) == BuiltinRef("builtins") and (
                    module.name(name_id).text in builtins
                ):
                    inherited.add(name_id)

        return cls(resolve_map, inherited, frozenset(builtins))

    def get(self, expr: ExprId) -> ResolveResult | None:
        return self._resolve_map.get(expr)

    def __iter__(self) -> Iterator[tuple[ExprId, ResolveResult]]:
        """Every resolved reference, in expression order."""
        for expr in sorted(self._resolve_map):
            result = self._resolve_map[expr]
            if result is not None:
                yield expr, result

    def is_inherited_builtin(self, name: NameId) -> bool:
        return name in self._inherited_builtins

    def check_builtin(self, expr: ExprId, module: Module) -> str | None:
        """The builtin that `expr` refers to, directly, by alias or via `with builtins`."""
        result = self.get(expr)
        if isinstance(result, BuiltinRef):
            return result.name
        if isinstance(result, Definition):
            if result.name in self._inherited_builtins:
                return module.name(result.name).text
            return None
        if isinstance(result, WithExprs):
            innermost = module.expr(result.exprs[0])
            target = module.expr(expr)
            if (
                isinstance(innermost, With)
                and self.get(innermost.env) == BuiltinRef("builtins")
                and isinstance(target, Reference)
                and target.name in self._builtin_names
            ):
                return target.name
        return None

    def to_diagnostics(self, source_map: ModuleSourceMap) -> Iterator[Diagnostic]:
        """An `UndefinedName` diagnostic for every unresolved reference with a location."""
        for expr in sorted(self._resolve_map):
            if self._resolve_map[expr] is not None:
                continue
            ptr = source_map.node_for_expr(expr)
            if ptr is not None:
                yield Diagnostic(ptr.range, DiagnosticKind.UNDEFINED_NAME)


class NameReference:
    """Reverse name resolution: the references of every definition and `with`."""

    def __init__(
        self,
        def_refs: Mapping[NameId, tuple[ExprId, ...]],
        with_refs: Mapping[ExprId, tuple[ExprId, ...]],
    ) -> None:
        self._def_refs = dict(def_refs)
        self._with_refs = dict(with_refs)

    @classmethod
    def build(cls, name_res: NameResolution) -> NameReference:
        def_refs: dict[NameId, list[ExprId]] = {}
        with_refs: dict[ExprId, list[ExprId]] = {}
        for expr, resolved in name_res:
            if isinstance(resolved, Definition):
                def_refs.setdefault(resolved.name, []).append(expr)
            elif isinstance(resolved, WithExprs):
                for with_expr in resolved.exprs:
                    with_refs.setdefault(with_expr, []).append(expr)
        return cls(
            {k: tuple(v) for k, v in def_refs.items()},
            {k: tuple(v) for k, v in with_refs.items()},
        )

    def name_references(self, name: NameId) -> tuple[ExprId, ...] | None:
        return self._def_refs.get(name)

    def with_references(self, with_expr: ExprId) -> tuple[ExprId, ...] | None:
        return self._with_refs.get(with_expr)