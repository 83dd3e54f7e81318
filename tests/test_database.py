import pytest

from nixanalysis.base import (
    Change,
    FileId,
    FileSet,
    FlakeGraph,
    FlakeInfo,
    SourceRoot,
    SourceRootId,
    VfsPath,
)
from nixanalysis.database import DefDatabase
from nixanalysis.defs import (
    IntLiteral,
    ListExpr,
    LiteralExpr,
    Module,
    ModuleSourceMap,
    PathLiteral,
)
from nixanalysis.path import PathAnchor, PathData

BASE_FILES = {
    "/default.nix": ["./foo/bar.nix"],
    "/foo/bar.nix": ["baz/../../bar.nix", "../default.nix"],
    "/bar.nix": ["./."],
    "/single.nix": None,
}


def _build(files):
    """A database with one source root; `None` stands for a file holding `42`."""
    db = DefDatabase()
    ids = {path: FileId(index) for index, path in enumerate(files)}
    file_set = FileSet((fid, VfsPath.from_path(path)) for path, fid in ids.items())
    change = Change()
    change.set_roots([SourceRoot(file_set, next(iter(ids.values())))])
    change.apply(db)
    for path, imports in files.items():
        fid = ids[path]
        module = Module()
        if imports is None:
            module.entry_expr = module.alloc_expr(LiteralExpr(IntLiteral(42)))
        else:
            elements = [
                module.alloc_expr(
                    LiteralExpr(PathLiteral(PathData.normalize(PathAnchor.relative(fid), text)))
                )
                for text in imports
            ]
            module.entry_expr = module.alloc_expr(ListExpr(elements))
        db.set_module(fid, module, ModuleSourceMap())
    return db, ids


@pytest.mark.parametrize(
    "src, refs",
    [
        ("/default.nix", ["/foo/bar.nix"]),
        ("/foo/bar.nix", ["/bar.nix", "/default.nix"]),
        ("/bar.nix", ["/default.nix"]),
        ("/single.nix", []),
    ],
)
def test_module_references(src, refs):
    db, ids = _build(BASE_FILES)
    assert db.module_references(ids[src]) == {ids[path] for path in refs}


def test_source_root_referrer_graph():
    files = dict(BASE_FILES)
    files["/mutual1.nix"] = ["./mutual2.nix"]
    files["/mutual2.nix"] = ["./mutual1.nix"]
    db, ids = _build(files)
    sid = db.file_source_root(ids["/default.nix"])
    root = db.source_root(sid)
    graph = db.source_root_referrer_graph(sid)

    lines = []
    for referee, _ in sorted(root.files()):
        referrers = ", ".join(str(root.path_for_file(f)) for f in graph.get(referee, ()))
        lines.append(f"{root.path_for_file(referee)} <- [{referrers}]")
    assert lines == [
        "/default.nix <- [/foo/bar.nix, /bar.nix]",
        "/foo/bar.nix <- [/default.nix]",
        "/bar.nix <- [/foo/bar.nix]",
        "/single.nix <- []",
        "/mutual1.nix <- [/mutual2.nix]",
        "/mutual2.nix <- [/mutual1.nix]",
    ]
    assert db.module_referrers(ids["/default.nix"]) == (ids["/foo/bar.nix"], ids["/bar.nix"])
    assert db.module_referrers(ids["/single.nix"]) == ()


def test_source_root_closure():
    db, ids = _build(BASE_FILES)
    closure = db.source_root_closure(db.file_source_root(ids["/default.nix"]))
    assert closure == {ids["/default.nix"], ids["/foo/bar.nix"], ids["/bar.nix"]}


def test_source_root_closure_without_entry():
    db = DefDatabase()
    db.set_source_root(SourceRootId(0), SourceRoot(FileSet(), None))
    assert db.source_root_closure(SourceRootId(0)) == frozenset()


def test_source_root_flake():
    db, ids = _build({"/flake.nix": None})
    file = ids["/flake.nix"]
    sid = db.file_source_root(file)
    info = FlakeInfo(file, {"nixpkgs": VfsPath.from_path("/nix/store/eeee")})
    change = Change()
    change.set_flake_graph(FlakeGraph({sid: info}))
    change.apply(db)
    assert db.source_root_flake_info(sid) == FlakeInfo(
        flake_file=file,
        input_store_paths={"nixpkgs": VfsPath.from_path("/nix/store/eeee")},
        input_flake_outputs={},
    )


def test_resolve_path_relative_allows_extra_supers():
    db, ids = _build(BASE_FILES)
    fid = ids["/foo/bar.nix"]
    data = PathData.normalize(PathAnchor.relative(fid), "../../../x.nix")
    assert db.resolve_path(data) == VfsPath.from_path("/x.nix")


def test_resolve_path_non_relative_is_none():
    db, _ = _build(BASE_FILES)
    assert db.resolve_path(PathData.normalize(PathAnchor.absolute(), "/etc/x")) is None
    assert db.resolve_path(PathData.normalize(PathAnchor.home(), "/x")) is None
    assert db.resolve_path(PathData.normalize(PathAnchor.search("p"), "x")) is None


def test_resolve_path_virtual_is_none():
    db = DefDatabase()
    fid = FileId(0)
    change = Change()
    change.set_roots([SourceRoot(FileSet([(fid, VfsPath.virtual("scratch"))]), fid)])
    change.apply(db)
    assert db.resolve_path(PathData.normalize(PathAnchor.relative(fid), "./a.nix")) is None


def test_module_round_trip_and_missing():
    db = DefDatabase()
    module, source_map = Module(), ModuleSourceMap()
    db.set_module(FileId(4), module, source_map)
    assert db.module(FileId(4)) is module
    assert db.source_map(FileId(4)) is source_map
    with pytest.raises(KeyError):
        db.module(FileId(5))