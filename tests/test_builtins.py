import json
import subprocess

import pytest

from nixanalysis.builtins import (
    Builtin,
    BuiltinKind,
    all_builtins,
    classify_kind,
    generate_builtins,
)

ATTR_NAMES_DOC = (
    "Return the names of the attributes in the set *set* in an\n"
    "alphabetically sorted list. For instance, `builtins.attrNames { y\n"
    '= 1; x = "foo"; }` evaluates to `[ "x" "y" ]`.'
)

NAMES = ["attrNames", "builtins", "false", "null", "true"]
GLOBALS = {"builtins", "false", "null", "true"}
DUMP = {"attrNames": {"args": ["set"], "arity": 1, "doc": ATTR_NAMES_DOC}}


class _FakeChild:
    def __init__(self, status):
        self._status = status

    def wait(self):
        return self._status


class _FakeNix:
    def __init__(self, dump=DUMP, fail_dump=False):
        self.dump = dump
        self.fail_dump = fail_dump
        self.run_calls = []
        self.probes = []

    def run(self, argv, **kwargs):
        self.run_calls.append(list(argv))
        if "__dump-builtins" in argv:
            status = 1 if self.fail_dump else 0
            out = json.dumps(self.dump)
        else:
            status = 0
            out = json.dumps(NAMES)
        return subprocess.CompletedProcess(argv, status, out.encode(), b"")

    def popen(self, argv, **kwargs):
        self.probes.append(argv[-1])
        return _FakeChild(0 if argv[-1] in GLOBALS else 1)


@pytest.fixture
def fake_nix(monkeypatch):
    fake = _FakeNix()
    monkeypatch.setattr(subprocess, "run", fake.run)
    monkeypatch.setattr(subprocess, "Popen", fake.popen)
    return fake


def test_sanity(fake_nix):
    table = generate_builtins()
    assert table["true"] == Builtin(
        kind=BuiltinKind.CONST,
        is_global=True,
        summary="`builtins.true`",
        doc=None,
    )
    assert table["attrNames"] == Builtin(
        kind=BuiltinKind.FUNCTION,
        is_global=False,
        summary="`builtins.attrNames set`",
        doc=ATTR_NAMES_DOC,
    )


def test_builtins_attrset(fake_nix):
    table = generate_builtins()
    assert table["builtins"].kind is BuiltinKind.ATTRSET
    assert list(table) == NAMES
    assert fake_nix.probes == NAMES


def test_name_query_command(fake_nix):
    table = generate_builtins("nix")
    assert list(table) == NAMES
    assert table["null"] == Builtin(
        kind=BuiltinKind.CONST,
        is_global=True,
        summary="`builtins.null`",
        doc=None,
    )
    first = fake_nix.run_calls[0]
    assert first[0] == "nix"
    assert first[-1] == "builtins.attrNames builtins"
    assert "dummy://" in first
    assert fake_nix.run_calls[1] == ["nix", "__dump-builtins"]


@pytest.mark.parametrize(
    ("name", "kind"),
    [
        ("builtins", BuiltinKind.ATTRSET),
        ("true", BuiltinKind.CONST),
        ("false", BuiltinKind.CONST),
        ("null", BuiltinKind.CONST),
        ("attrNames", BuiltinKind.FUNCTION),
    ],
)
def test_classify_kind(name, kind):
    assert classify_kind(name) is kind


def test_arity_mismatch(monkeypatch):
    fake = _FakeNix(dump={"attrNames": {"args": ["set"], "arity": 2, "doc": ""}})
    monkeypatch.setattr(subprocess, "run", fake.run)
    monkeypatch.setattr(subprocess, "Popen", fake.popen)
    with pytest.raises(ValueError, match="Arity mismatch"):
        generate_builtins()


def test_failed_command(monkeypatch):
    fake = _FakeNix(fail_dump=True)
    monkeypatch.setattr(subprocess, "run", fake.run)
    monkeypatch.setattr(subprocess, "Popen", fake.popen)
    with pytest.raises(RuntimeError, match="failed"):
        generate_builtins()


def test_missing_nix(monkeypatch):
    def missing(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", missing)
    with pytest.raises(RuntimeError, match="accessible"):
        generate_builtins("no-such-nix")


def test_all_builtins_is_cached(fake_nix):
    all_builtins.cache_clear()
    try:
        first = all_builtins()
        second = all_builtins()
        assert first is second
        assert len(fake_nix.run_calls) == 2
        assert first["null"].is_global
        with pytest.raises(TypeError):
            first["x"] = first["null"]
    finally:
        all_builtins.cache_clear()