"""Guessing what role a Nix file plays: flake, package, NixOS module or config."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from .base import FileId
from .database import DefDatabase
from .defs import (
    Apply,
    Assert,
    Attrset,
    ExprId,
    ExprValue,
    Lambda,
    LetIn,
    Module,
    NameId,
    RecAttrset,
    With,
)

_CONFIG_MODULE_FIELDS = frozenset({"options", "config", "meta"})


@dataclass(frozen=True)
class Unknown:
    """Uncategorized or ambiguous."""


@dataclass(frozen=True)
class FlakeNix:
    """The flake definition `flake.nix`.

    `param_inputs` are the inputs named in the pattern parameter of `outputs`,
    with the special `self` left out.
    """

    explicit_inputs: Mapping[str, NameId] = field(default_factory=dict)
    param_inputs: Mapping[str, NameId] = field(default_factory=dict)
    outputs_expr: Optional[ExprId] = None


@dataclass(frozen=True)
class Package:
    """A package definition: a lambda accepting package dependencies."""

    lambda_expr: ExprId


@dataclass(frozen=True)
class ConfigModule:
    """A NixOS module: a lambda returning an attrset with `options`, `config` or `meta`."""

    lambda_expr: ExprId


@dataclass(frozen=True)
class Config:
    """A NixOS configuration: a lambda returning a plain attrset."""

    lambda_expr: ExprId


ModuleKind = Union[Unknown, FlakeNix, Package, ConfigModule, Config]


def peel_expr(module: Module, expr: ExprId) -> ExprId:
    """Skip environment-like wrappers (`with`, `assert`, `let ... in`) around `expr`."""
    while True:
        node = module.expr(expr)
        if isinstance(node, (With, Assert, LetIn)):
            expr = node.body
        else:
            return expr


def parse_flake_nix(module: Module) -> FlakeNix:
    """Read the inputs and the outputs function of a flake definition."""
    explicit_inputs: dict[str, NameId] = {}
    param_inputs: dict[str, NameId] = {}
    outputs_expr: ExprId | None = None

    flake_set = module.expr(module.entry_expr)
    if isinstance(flake_set, (Attrset, RecAttrset)):
        for name_id, value in flake_set.bindings.statics:
            if not isinstance(value, ExprValue):
                continue
            key = module.name(name_id).text
            if key == "inputs":
                inputs = module.expr(value.expr)
                if not isinstance(inputs, (Attrset, RecAttrset)):
                    continue
                explicit_inputs = {
                    module.name(input_id).text: input_id
                    for input_id, _ in inputs.bindings.statics
                }
            elif key == "outputs":
                outputs_expr = value.expr
                outputs = module.expr(value.expr)
                if not isinstance(outputs, Lambda) or outputs.pat is None:
                    continue
                param_inputs = {
                    module.name(field_id).text: field_id
                    for field_id, _ in outputs.pat.fields
                    if field_id is not None and module.name(field_id).text != "self"
                }

    return FlakeNix(explicit_inputs, param_inputs, outputs_expr)


def guess_module_kind(module: Module) -> ModuleKind:
    """Guess the kind of a file from the shape of its entry expression."""
    entry = peel_expr(module, module.entry_expr)
    lam = module.expr(entry)
    if not isinstance(lam, Lambda) or lam.pat is None:
        return Unknown()

    body = module.expr(peel_expr(module, lam.body))
    # Typically `stdenv.mkDerivation { ... }`.
    if isinstance(body, Apply):
        return Package(entry)

    if lam.pat.ellipsis and isinstance(body, (Attrset, RecAttrset)):
        if any(
            module.name(name_id).text in _CONFIG_MODULE_FIELDS
            for name_id, _ in body.bindings.statics
        ):
            return ConfigModule(entry)
        return Config(entry)

    return Unknown()


def module_kind(db: DefDatabase, file_id: FileId) -> ModuleKind:
    """The kind of `file_id`; the flake file of a source root is always a flake."""
    module = db.module(file_id)
    flake_info = db.source_root_flake_info(db.file_source_root(file_id))
    if flake_info is not None and flake_info.flake_file == file_id:
        return parse_flake_nix(module)
    return guess_module_kind(module)