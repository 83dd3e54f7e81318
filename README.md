# nixanalysis

Semantic analysis of Nix expressions that have already been lowered into
an arena of expressions and names. Given such a module and its source map,
the package answers the questions an editor or a linter asks:

- **Name resolution** (`nixanalysis.nameres`): `ModuleScopes.build` gives
  the scope of every expression; `NameResolution.build` resolves each
  `Reference` to a local `Definition`, a global `BuiltinRef`, or the
  enclosing `WithExprs` (innermost first). `NameResolution.check_builtin`
  also follows `inherit (builtins) ...` aliases and `with builtins;`.
  `NameResolution.to_diagnostics` reports undefined names, and
  `NameReference.build` gives the reverse lookup from a definition or a
  `with` to the references that use it.
- **Module kinds** (`nixanalysis.kind`): `module_kind(db, file_id)` tells
  whether a file is the flake file of its source root (`FlakeNix`, with its
  explicit and parameter inputs), a package (`Package`), a NixOS module
  (`ConfigModule`), a NixOS configuration (`Config`) or `Unknown`.
- **Liveness** (`nixanalysis.liveness`): `liveness_check` finds unused
  `let` bindings, unused lambda parameters of the main lambda of packages,
  configurations and flake outputs, unused `with` expressions and `rec`
  attrsets whose names are never used.
- **Paths and references** (`nixanalysis.path`, `nixanalysis.database`):
  `PathData.normalize` resolves `.` and `..` in path literals;
  `DefDatabase` resolves relative paths to files of the same source root
  (falling back to `default.nix` inside a directory) and provides
  `module_references`, `source_root_referrer_graph`, `module_referrers`
  and `source_root_closure`.
- **Diagnostics** (`nixanalysis.diagnostic`): `Diagnostic` with its
  `code()`, `severity()`, `message()`, `is_unnecessary()`,
  `is_deprecated()` and `debug_display()`.
- **Workspace model** (`nixanalysis.base`): `FileId`, `VfsPath`, `FileSet`,
  `SourceRoot`, `FlakeGraph`, `FlakeInfo`, and `Change`, which applies a
  batch of roots, file contents and flake data to a database.

## Installation

```
pip install .
```

## Usage

The module for `let a = 1; in 2` is built by hand here, with source
locations for its name and expressions:

```python
from nixanalysis.base import Change, FileId, FileSet, SourceRoot, TextRange, VfsPath
from nixanalysis.builtins import Builtin, BuiltinKind
from nixanalysis.database import DefDatabase
from nixanalysis.defs import (
    AstPtr, Bindings, ExprValue, IntLiteral, LetIn, LiteralExpr,
    Module, ModuleSourceMap, Name, NameKind,
)
from nixanalysis.kind import module_kind
from nixanalysis.liveness import liveness_check
from nixanalysis.nameres import ModuleScopes, NameResolution

module = Module()
source_map = ModuleSourceMap()
one = module.alloc_expr(LiteralExpr(IntLiteral(1)))
name_a = module.alloc_name(Name("a", NameKind.LET_IN))
two = module.alloc_expr(LiteralExpr(IntLiteral(2)))
let_in = module.alloc_expr(LetIn(Bindings(statics=[(name_a, ExprValue(one))]), two))
module.entry_expr = let_in
source_map.insert_name(AstPtr("NAME", TextRange(4, 5)), name_a)
source_map.insert_expr(AstPtr("LITERAL", TextRange(8, 9)), one)
source_map.insert_expr(AstPtr("LITERAL", TextRange(14, 15)), two)
source_map.insert_expr(AstPtr("LET_IN", TextRange(0, 15)), let_in)

db = DefDatabase()
files = FileSet()
files.insert(FileId(0), VfsPath.from_path("/default.nix"))
change = Change()
change.set_roots([SourceRoot(files, entry=FileId(0))])
change.change_file(FileId(0), "let a = 1; in 2")
change.apply(db)
db.set_module(FileId(0), module, source_map)

builtins = {"true": Builtin(BuiltinKind.CONST, True, "`builtins.true`")}
scopes = ModuleScopes.build(module)
name_res = NameResolution.build(module, scopes, builtins)
result = liveness_check(module, name_res, module_kind(db, FileId(0)))
for diag in result.to_diagnostics(source_map):
    print(diag.debug_display(), diag.code(), diag.message())
# 4..5: UnusedBinding unused_binding Unused binding
```

## Builtins

`nixanalysis.builtins.all_builtins()` returns the table of Nix builtins,
built once by `generate_builtins("nix")` and then cached.
`generate_builtins(nix_command)` runs the given `nix` executable: it lists
the builtin names, probes each name with `nix eval` to learn whether it is
visible globally, and reads argument names and documentation from
`nix __dump-builtins`. It raises `RuntimeError` if a command cannot be run
or fails, and `ValueError` if the output is malformed. Any mapping from
names to `Builtin` can be passed to the name resolution instead.

## What the package does not do

- It does not parse Nix source text or lower it into a `Module`. File
  contents can be stored in the database, but a `Module` and its
  `ModuleSourceMap` must be built by the caller and registered with
  `DefDatabase.set_module`.
- Only relative path literals resolve to files; absolute, home (`~`) and
  search (`<...>`) paths do not.
- NixOS options and flake outputs are stored as opaque values and not
  analysed.
- There is no command-line tool and no editor server.

## Running the tests

```
pip install .[test]
pytest
```