import pytest

from nixanalysis.base import (
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
    Apply,
    Assert,
    Attrset,
    Bindings,
    ExprValue,
    IntLiteral,
    Lambda,
    LetIn,
    ListExpr,
    LiteralExpr,
    Module,
    ModuleSourceMap,
    Name,
    NameKind,
    Pat,
    RecAttrset,
    Reference,
    Select,
    StringLiteral,
    With,
)
from nixanalysis.kind import (
    Config,
    ConfigModule,
    FlakeNix,
    Package,
    Unknown,
    guess_module_kind,
    module_kind,
    parse_flake_nix,
    peel_expr,
)


class Builder:
    def __init__(self):
        self.module = Module()

    def e(self, expr):
        return self.module.alloc_expr(expr)

    def n(self, text, kind):
        return self.module.alloc_name(Name(text, kind))

    def ref(self, name):
        return self.e(Reference(name))

    def int_(self, value):
        return self.e(LiteralExpr(IntLiteral(value)))

    def str_(self, value):
        return self.e(LiteralExpr(StringLiteral(value)))

    def select(self, base, *attrs):
        return self.e(Select(self.ref(base), tuple(self.str_(a) for a in attrs)))

    def attrset(self, entries, rec=False):
        kind = NameKind.REC_ATTRSET if rec else NameKind.PLAIN_ATTRSET
        statics = [(self.n(text, kind), ExprValue(value)) for text, value in entries]
        ctor = RecAttrset if rec else Attrset
        return self.e(ctor(Bindings(statics)))

    def let_in(self, entries, body):
        statics = [(self.n(text, NameKind.LET_IN), ExprValue(value)) for text, value in entries]
        return self.e(LetIn(Bindings(statics), body))

    def lam(self, body, param=None, fields=None, ellipsis=False):
        param_id = None if param is None else self.n(param, NameKind.PARAM)
        pat = None
        if fields is not None:
            pat = Pat(
                tuple((self.n(f, NameKind.PAT_FIELD), None) for f in fields), ellipsis
            )
        return self.e(Lambda(param_id, pat, body))

    def finish(self, entry):
        self.module.entry_expr = entry
        return self.module


def texts(module, mapping):
    return {key: module.name(value).text for key, value in mapping.items()}


def test_flake_nix_normal():
    b = Builder()
    url = b.attrset([("url", b.str_("github:oxalica/nil"))])
    inputs = b.attrset([("nil", url)])
    outputs = b.lam(b.attrset([]), fields=["self", "nixpkgs"], ellipsis=True)
    module = b.finish(b.attrset([("inputs", inputs), ("outputs", outputs)]))

    got = parse_flake_nix(module)
    assert set(got.explicit_inputs) == {"nil"}
    assert set(got.param_inputs) == {"nixpkgs"}
    assert got.outputs_expr == outputs
    assert texts(module, got.param_inputs) == {"nixpkgs": "nixpkgs"}


def test_flake_nix_rec():
    b = Builder()
    url = b.attrset([("url", b.str_("github:oxalica/nil"))], rec=True)
    inputs = b.attrset([("nil", url)], rec=True)
    outputs = b.lam(b.attrset([], rec=True), fields=["self", "nixpkgs"], ellipsis=True)
    module = b.finish(b.attrset([("inputs", inputs), ("outputs", outputs)], rec=True))

    got = parse_flake_nix(module)
    assert set(got.explicit_inputs) == {"nil"}
    assert set(got.param_inputs) == {"nixpkgs"}
    assert got.outputs_expr == outputs


def test_flake_nix_non_lambda_outputs_still_recorded():
    b = Builder()
    outputs = b.int_(1)
    module = b.finish(b.attrset([("outputs", outputs)]))
    got = parse_flake_nix(module)
    assert got == FlakeNix({}, {}, outputs)


def test_flake_nix_not_attrset():
    b = Builder()
    module = b.finish(b.int_(42))
    assert parse_flake_nix(module) == FlakeNix({}, {}, None)


def test_package():
    b = Builder()
    derivation = b.e(Apply(b.select("stdenv", "mkDerivation"), b.attrset([])))
    body = b.let_in([("path", b.e(ListExpr(())))], derivation)
    lam = b.lam(body, fields=["stdenv", "foo", "bar"])
    module = b.finish(lam)
    assert guess_module_kind(module) == Package(lam)


def test_config_module():
    b = Builder()
    attrs = b.attrset([("options", b.attrset([])), ("config", b.attrset([]))])
    let = b.let_in([("cfg", b.select("config", "foo"))], attrs)
    inner_with = b.e(With(b.ref("lib"), let))
    lam = b.lam(inner_with, fields=["lib", "config"], ellipsis=True)
    outer_with = b.e(With(b.ref("builtins"), lam))
    module = b.finish(outer_with)
    assert guess_module_kind(module) == ConfigModule(lam)


def test_config():
    b = Builder()
    packages = b.e(With(b.ref("pkgs"), b.e(ListExpr((b.ref("hello"),)))))
    attrs = b.attrset([("environment", b.attrset([("systemPackages", packages)]))])
    lam = b.lam(b.e(With(b.ref("lib"), attrs)), fields=["lib", "pkgs"], ellipsis=True)
    module = b.finish(lam)
    assert guess_module_kind(module) == Config(lam)


def test_attrset_lambda_without_ellipsis_is_unknown():
    b = Builder()
    lam = b.lam(b.attrset([("options", b.attrset([]))]), fields=["lib"])
    module = b.finish(lam)
    assert guess_module_kind(module) == Unknown()


def test_plain_lambda_is_unknown():
    b = Builder()
    lam = b.lam(b.e(Apply(b.ref("f"), b.int_(1))), param="x")
    module = b.finish(lam)
    assert guess_module_kind(module) == Unknown()


def test_peel_expr_strips_wrappers():
    b = Builder()
    inner = b.int_(1)
    wrapped = b.e(With(b.ref("a"), b.e(Assert(b.ref("c"), b.let_in([("x", b.int_(2))], inner)))))
    module = b.finish(wrapped)
    assert peel_expr(module, wrapped) == inner
    assert peel_expr(module, inner) == inner


def make_db(module, flake):
    db = DefDatabase()
    fid = FileId(0)
    sid = SourceRootId(0)
    db.set_module(fid, module, ModuleSourceMap())
    db.set_source_root(sid, SourceRoot(FileSet([(fid, VfsPath.from_path("/flake.nix"))]), fid))
    db.set_file_source_root(fid, sid)
    if flake:
        info = FlakeInfo(fid, {"nixpkgs": VfsPath.from_path("/nix/store/eeee")})
        db.set_flake_graph(FlakeGraph({sid: info}))
    return db, fid


def build_flake_module():
    b = Builder()
    inputs = b.attrset([("nixpkgs", b.attrset([("url", b.str_("github:NixOS/nixpkgs"))]))])
    outputs = b.lam(b.attrset([]), param="inputs", fields=["self", "nixpkgs", "nix"])
    return b.finish(
        b.attrset(
            [("description", b.str_("Hello")), ("inputs", inputs), ("outputs", outputs)]
        )
    )


def test_module_kind_flake_file():
    db, fid = make_db(build_flake_module(), flake=True)
    got = module_kind(db, fid)
    assert isinstance(got, FlakeNix)
    assert set(got.explicit_inputs) == {"nixpkgs"}
    assert set(got.param_inputs) == {"nixpkgs", "nix"}


def test_module_kind_without_flake_guesses():
    db, fid = make_db(build_flake_module(), flake=False)
    assert module_kind(db, fid) == Unknown()


def test_module_kind_missing_module():
    db = DefDatabase()
    with pytest.raises(KeyError):
        module_kind(db, FileId(7))