"""The definition database: lowered modules and the import graph between files."""

from __future__ import annotations

from .base import FileId, SourceDatabase, SourceRootId, VfsPath
from .defs import LiteralExpr, Module, ModuleSourceMap, PathLiteral
from .path import AnchorKind, PathData

DEFAULT_IMPORT_FILE = "default.nix"


class DefDatabase(SourceDatabase):
    """Inputs plus the lowered module of every file and queries over them."""

    def __init__(self) -> None:
        super().__init__()
        self._modules: dict[FileId, tuple[Module, ModuleSourceMap]] = {}

    def set_module(self, file_id: FileId, module: Module, source_map: ModuleSourceMap) -> None:
        self._modules[file_id] = (module, source_map)

    def _module_entry(self, file_id: FileId) -> tuple[Module, ModuleSourceMap]:
        try:
            return self._modules[file_id]
        except KeyError:
            raise KeyError(f"no module set for {file_id!r}") from None

    def module(self, file_id: FileId) -> Module:
        return self._module_entry(file_id)[0]

    def source_map(self, file_id: FileId) -> ModuleSourceMap:
        return self._module_entry(file_id)[1]

    def resolve_path(self, path: PathData) -> VfsPath | None:
        """The filesystem location of a path literal; only relative paths resolve."""
        if path.anchor.kind is not AnchorKind.RELATIVE:
            return None
        file = path.anchor.file_id
        root = self.source_root(self.file_source_root(file))
        vpath = root.path_for_file(file)
        # Virtual paths are all standalone.
        if vpath.as_path() is None:
            return None
        for _ in range(path.supers + 1):
            parent = vpath.parent()
            if parent is None:
                # Extra `..`s are allowed.
                break
            vpath = parent
        return vpath.join(path.relative_path)

    def module_references(self, file_id: FileId) -> frozenset[FileId]:
        """Files of the same source root referenced by path literals in `file_id`."""
        root = self.source_root(self.file_source_root(file_id))
        refs: set[FileId] = set()
        for _, expr in self.module(file_id).exprs():
            if not (isinstance(expr, LiteralExpr) and isinstance(expr.literal, PathLiteral)):
                continue
            vpath = self.resolve_path(expr.literal.path)
            if vpath is None:
                continue
            target = root.file_for_path(vpath)
            if target is None:
                with_default = vpath.join(DEFAULT_IMPORT_FILE)
                if with_default is not None:
                    target = root.file_for_path(with_default)
            if target is not None:
                refs.add(target)
        return frozenset(refs)

    def source_root_referrer_graph(self, sid: SourceRootId) -> dict[FileId, tuple[FileId, ...]]:
        """For each referenced file, the sorted files referencing it."""
        graph: dict[FileId, list[FileId]] = {}
        for file, _ in self.source_root(sid).files():
            for referee in self.module_references(file):
                graph.setdefault(referee, []).append(file)
        return {referee: tuple(sorted(referrers)) for referee, referrers in graph.items()}

    def module_referrers(self, file_id: FileId) -> tuple[FileId, ...]:
        graph = self.source_root_referrer_graph(self.file_source_root(file_id))
        return graph.get(file_id, ())

    def source_root_closure(self, sid: SourceRootId) -> frozenset[FileId]:
        """Every file reachable from the entry of the source root, entry included."""
        entry = self.source_root(sid).entry
        if entry is None:
            return frozenset()
        closure = {entry}
        queue = [entry]
        while queue:
            for target in self.module_references(queue.pop()):
                if target not in closure:
                    closure.add(target)
                    queue.append(target)
        return frozenset(closure)