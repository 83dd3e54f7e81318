"""Liveness check of names.

Locates unnecessary or inaccessible bindings and expressions, based on name
resolution: unused `let` bindings, unused `with` expressions, unnecessary `rec`
attrsets and unused parameters of packages, configurations and flake outputs.

Removing everything reported keeps the semantics. A reported binding either has
no references, or all its references are inside other reported bindings. Warnings
inside a sub-expression do not depend on whether it is reachable from the root.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .base import TextRange
from .defs import (
    ExprId,
    ExprValue,
    Inherit,
    Lambda,
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
from .kind import Config, ConfigModule, FlakeNix, ModuleKind, Package
from .nameres import Definition, NameResolution, WithExprs

_WITH_KEYWORD_LEN = len("with")
_REC_KEYWORD_LEN = len("rec")


@dataclass(frozen=True)
class LivenessCheckResult:
    """Unused names, `with` expressions and `rec` attrsets of a module."""

    names: tuple[NameId, ...] = ()
    withs: tuple[ExprId, ...] = ()
    rec_attrsets: tuple[ExprId, ...] = ()

    def to_diagnostics(self, source_map: ModuleSourceMap) -> Iterator[Diagnostic]:
        """Diagnostics at every location of the unused items.

        A `with` is reported on its keyword, a `rec` attrset on its `rec` keyword.
        Items without a source location are skipped.
        """
        for name in self.names:
            for ptr in source_map.nodes_for_name(name):
                yield Diagnostic(ptr.range, DiagnosticKind.UNUSED_BINDING)
        for expr in self.withs:
            ptr = source_map.node_for_expr(expr)
            if ptr is not None:
                yield Diagnostic(_keyword_range(ptr.range, _WITH_KEYWORD_LEN), DiagnosticKind.UNUSED_WITH)
        for expr in self.rec_attrsets:
            ptr = source_map.node_for_expr(expr)
            if ptr is not None:
                yield Diagnostic(_keyword_range(ptr.range, _REC_KEYWORD_LEN), DiagnosticKind.UNUSED_REC)


def _keyword_range(node: TextRange, length: int) -> TextRange:
    return TextRange(node.start, min(node.start + length, node.end))


def _must_use_params(kind: ModuleKind) -> tuple[ExprId | None, bool]:
    if isinstance(kind, (Package, ConfigModule, Config)):
        return kind.lambda_expr, False
    if isinstance(kind, FlakeNix) and kind.outputs_expr is not None:
        return kind.outputs_expr, True
    return None, False


def liveness_check(
    module: Module, name_res: NameResolution, kind: ModuleKind
) -> LivenessCheckResult:
    """Find the unused items of `module`."""
    must_use_params_expr, is_flake_outputs = _must_use_params(kind)

    unused_defs: list[NameId] = []
    visited_defs: set[NameId] = set()
    visited_def_rhs: set[ExprId] = set()
    visited_withs: set[ExprId] = set()
    stack: list[ExprId] = [module.entry_expr]

    while stack:
        # Renewed every round, or the whole check becomes quadratic.
        discovered_let_rhs: dict[NameId, ExprId] = {}

        # Traverse all expressions reachable from the roots.
        while stack:
            expr_id = stack.pop()
            expr = module.expr(expr_id)
            if isinstance(expr, Reference):
                resolved = name_res.get(expr_id)
                if isinstance(resolved, Definition):
                    visited_defs.add(resolved.name)
                    rhs = discovered_let_rhs.pop(resolved.name, None)
                    # Inherit-from expressions are shared, so visit them once.
                    if rhs is not None and rhs not in visited_def_rhs:
                        visited_def_rhs.add(rhs)
                        stack.append(rhs)
                elif isinstance(resolved, WithExprs):
                    visited_withs.update(resolved.exprs)
            elif isinstance(expr, LetIn):
                bindings = expr.bindings
                for name, value in bindings.statics:
                    if isinstance(value, (ExprValue, Inherit)):
                        rhs = value.expr
                    else:
                        rhs = bindings.inherit_froms[value.index]
                    discovered_let_rhs[name] = rhs
                stack.append(expr.body)
            else:
                stack.extend(child_exprs(expr))

        # Unused let-bindings are recorded, and traversal continues inside
        # them as if they were reachable.
        unused_defs.extend(discovered_let_rhs)
        stack.extend(discovered_let_rhs.values())

    # Items referenced only by unused let-bindings are not reported: those
    # bindings are often unfinished code that the user is still fixing.
    unused_withs: list[ExprId] = []
    unused_recs: list[ExprId] = []
    for expr_id, expr in module.exprs():
        if isinstance(expr, Lambda):
            param, pat = expr.param, expr.pat
            # `{ ... }@bar: ...` with `bar` unused.
            if param is not None and pat is not None and param not in visited_defs:
                unused_defs.append(param)
            # `{ foo, ... }: ...` with `foo` unused, only for the main lambda.
            # For flake outputs with `@bar`, fields are always considered used:
            # Nix adds such inputs from the registry and `bar` exposes them.
            if (
                pat is not None
                and must_use_params_expr == expr_id
                and (not is_flake_outputs or param is None)
            ):
                for name, _ in pat.fields:
                    if name is None or name in visited_defs:
                        continue
                    # `self` cannot be removed without an ellipsis.
                    if is_flake_outputs and not pat.ellipsis and module.name(name).text == "self":
                        continue
                    unused_defs.append(name)
        elif isinstance(expr, With):
            if expr_id not in visited_withs:
                unused_withs.append(expr_id)
        elif isinstance(expr, RecAttrset):
            if all(name not in visited_defs for name, _ in expr.bindings.statics):
                unused_recs.append(expr_id)

    return LivenessCheckResult(tuple(unused_defs), tuple(unused_withs), tuple(unused_recs))