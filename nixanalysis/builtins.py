"""The table of Nix builtins, collected from a local `nix` installation."""

from __future__ import annotations

import functools
import json
import subprocess
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

_EVAL_ARGS = ("eval", "--experimental-features", "nix-command", "--store", "dummy://")


class BuiltinKind(Enum):
    CONST = "const"
    FUNCTION = "function"
    ATTRSET = "attrset"


@dataclass(frozen=True)
class Builtin:
    """A builtin name with its kind, visibility and documentation."""

    kind: BuiltinKind
    is_global: bool
    summary: str
    doc: str | None = None


def classify_kind(name: str) -> BuiltinKind:
    """The kind of the builtin called `name`."""
    if name == "builtins":
        return BuiltinKind.ATTRSET
    if name in ("true", "false", "null"):
        return BuiltinKind.CONST
    return BuiltinKind.FUNCTION


def _run_json(argv: list[str]) -> Any:
    try:
        proc = subprocess.run(argv, capture_output=True, check=False)
    except OSError as err:
        raise RuntimeError(f"Failed to run {argv!r}. Is `{argv[0]}` accessible?") from err
    if proc.returncode != 0:
        raise RuntimeError(
            f"Command {argv!r} failed with status {proc.returncode}: {proc.stderr!r}"
        )
    return json.loads(proc.stdout)


def _probe_globals(nix_command: str, names: list[str]) -> list[bool]:
    # Spawn every probe first, then wait for all of them.
    try:
        children = [
            subprocess.Popen(
                [nix_command, *_EVAL_ARGS, "--expr", name],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            for name in names
        ]
    except OSError as err:
        raise RuntimeError(f"Failed to spawn `{nix_command}`") from err
    return [child.wait() == 0 for child in children]


def _parse_dump(raw: Any) -> dict[str, tuple[list[str], str]]:
    if not isinstance(raw, dict):
        raise ValueError("builtins dump is not an object")
    parsed: dict[str, tuple[list[str], str]] = {}
    for name, entry in sorted(raw.items()):
        try:
            args = [str(arg) for arg in entry["args"]]
            arity = int(entry["arity"])
            doc = str(entry["doc"])
        except (KeyError, TypeError) as err:
            raise ValueError(f"malformed builtins dump entry {name!r}: {entry!r}") from err
        if len(args) != arity:
            raise ValueError(f"Arity mismatch: {name!r}: {entry!r}")
        parsed[name] = (args, doc)
    return parsed


def generate_builtins(nix_command: str = "nix") -> dict[str, Builtin]:
    """Query `nix_command` for all builtins, their visibility and documentation."""
    names = _run_json([nix_command, *_EVAL_ARGS, "--json", "--expr", "builtins.attrNames builtins"])
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        raise ValueError("builtin names are not a list of strings")
    globals_ = _probe_globals(nix_command, names)
    dump = _parse_dump(_run_json([nix_command, "__dump-builtins"]))

    table: dict[str, Builtin] = {}
    for name, is_global in zip(names, globals_):
        entry = dump.get(name)
        if entry is None:
            args_text, doc = "", None
        else:
            args, doc = entry
            args_text = "".join(f" {arg}" for arg in args)
        table[name] = Builtin(
            kind=classify_kind(name),
            is_global=is_global,
            summary=f"`builtins.{name}{args_text}`",
            doc=doc,
        )
    return table


@functools.lru_cache(maxsize=None)
def all_builtins() -> Mapping[str, Builtin]:
    """The builtins of the local `nix`, collected once and then cached."""
    return MappingProxyType(generate_builtins())