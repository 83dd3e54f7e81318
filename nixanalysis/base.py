"""Workspace model: files, source roots, flakes and the input database."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Callable, Generic, Iterable, Iterator, TypeVar

T = TypeVar("T")
U = TypeVar("U")

_U32_MAX = 2**32 - 1


@dataclass(frozen=True, order=True)
class TextRange:
    """A half-open range of byte offsets in a file."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.start > self.end:
            raise ValueError(f"invalid text range {self.start}..{self.end}")

    @classmethod
    def empty(cls, offset: int) -> TextRange:
        """An empty range at `offset`."""
        return cls(offset, offset)

    def cover(self, other: TextRange) -> TextRange:
        """The smallest range containing both ranges."""
        return TextRange(min(self.start, other.start), max(self.end, other.end))

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


@dataclass(frozen=True, order=True)
class FileId:
    """Identifier of a file in the workspace."""

    raw: int

    def __repr__(self) -> str:
        return f"FileId({self.raw})"


@dataclass(frozen=True, order=True)
class SourceRootId:
    """Identifier of a source root in the workspace."""

    raw: int

    def __repr__(self) -> str:
        return f"SourceRootId({self.raw})"


@dataclass(frozen=True)
class VfsPath:
    """A path in the virtual filesystem: either a real path or a virtual name."""

    path: PurePosixPath | None = None
    virtual_id: str | None = None

    def __post_init__(self) -> None:
        if (self.path is None) == (self.virtual_id is None):
            raise ValueError("a VfsPath is either a filesystem path or a virtual one")
        if self.path is not None and not isinstance(self.path, PurePosixPath):
            object.__setattr__(self, "path", PurePosixPath(os.fspath(self.path)))

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> VfsPath:
        """A filesystem path."""
        return cls(path=PurePosixPath(os.fspath(path)))

    @classmethod
    def virtual(cls, name: str) -> VfsPath:
        """A standalone virtual path."""
        return cls(virtual_id=name)

    def as_path(self) -> PurePosixPath | None:
        """The underlying filesystem path, or None for virtual paths."""
        return self.path

    def join(self, path: str) -> VfsPath | None:
        """`self` extended by `path`, or None if `self` is virtual."""
        if self.path is None:
            return None
        return VfsPath(path=self.path / path)

    def parent(self) -> VfsPath | None:
        """The parent path, or None if virtual or without a parent."""
        if self.path is None:
            return None
        parent = self.path.parent
        if parent == self.path:
            return None
        return VfsPath(path=parent)

    def __str__(self) -> str:
        if self.path is not None:
            return str(self.path)
        return f"(virtual path {self.virtual_id})"


class FileSet:
    """A set of VfsPaths identified by FileIds."""

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, entries: Iterable[tuple[FileId, VfsPath]] = ()) -> None:
        self._files: dict[VfsPath, FileId] = {}
        self._paths: dict[FileId, VfsPath] = {}
        for file, path in entries:
            self.insert(file, path)

    def insert(self, file: FileId, path: VfsPath) -> None:
        self._files[path] = file
        self._paths[file] = path

    def remove_file(self, file: FileId) -> None:
        path = self._paths.pop(file, None)
        if path is not None:
            self._files.pop(path, None)

    def file_for_path(self, path: VfsPath) -> FileId | None:
        return self._files.get(path)

    def path_for_file(self, file: FileId) -> VfsPath:
        """The path of `file`; raises KeyError if it is not in the set."""
        try:
            return self._paths[file]
        except KeyError:
            raise KeyError(f"{file!r} is not in the file set") from None

    def __iter__(self) -> Iterator[tuple[FileId, VfsPath]]:
        return iter(list(self._paths.items()))

    def __len__(self) -> int:
        return len(self._paths)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileSet):
            return NotImplemented
        return self._files == other._files and self._paths == other._paths

    def __repr__(self) -> str:
        return f"FileSet({self._paths!r})"


@dataclass
class SourceRoot:
    """A workspace unit, typically a flake package."""

    file_set: FileSet = field(default_factory=FileSet)
    entry: FileId | None = None

    def file_for_path(self, path: VfsPath) -> FileId | None:
        return self.file_set.file_for_path(path)

    def path_for_file(self, file: FileId) -> VfsPath:
        return self.file_set.path_for_file(file)

    def files(self) -> Iterator[tuple[FileId, VfsPath]]:
        return iter(self.file_set)


@dataclass(repr=False)
class FlakeInfo:
    """Flake metadata of a source root."""

    flake_file: FileId
    input_store_paths: dict[str, VfsPath] = field(default_factory=dict)
    input_flake_outputs: dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"FlakeInfo(flake_file={self.flake_file!r}, "
            f"input_store_paths={self.input_store_paths!r}, "
            f"input_flake_outputs={list(self.input_flake_outputs)!r}, ..)"
        )


@dataclass
class FlakeGraph:
    """Flake information of every source root that is a flake."""

    nodes: dict[SourceRootId, FlakeInfo] = field(default_factory=dict)


@dataclass(frozen=True)
class InFile(Generic[T]):
    """A value tagged with the file it comes from."""

    file_id: FileId
    value: T

    def map(self, func: Callable[[T], U]) -> InFile[U]:
        return InFile(self.file_id, func(self.value))


@dataclass(frozen=True)
class FilePos:
    """A position inside a file."""

    file_id: FileId
    pos: int


@dataclass(frozen=True)
class FileRange:
    """A text range inside a file."""

    file_id: FileId
    range: TextRange

    @classmethod
    def empty(cls, pos: FilePos) -> FileRange:
        return cls(pos.file_id, TextRange.empty(pos.pos))


@dataclass(repr=False)
class Change:
    """A batch of input changes to apply to a database."""

    flake_graph: FlakeGraph | None = None
    roots: list[SourceRoot] | None = None
    file_changes: list[tuple[FileId, str]] = field(default_factory=list)
    nixos_options: Any = None

    def is_empty(self) -> bool:
        return self.roots is None and not self.file_changes

    def set_flake_graph(self, graph: FlakeGraph) -> None:
        self.flake_graph = graph

    def set_nixos_options(self, opts: Any) -> None:
        self.nixos_options = opts

    def set_roots(self, roots: list[SourceRoot]) -> None:
        self.roots = list(roots)

    def change_file(self, file_id: FileId, content: str) -> None:
        self.file_changes.append((file_id, content))

    def apply(self, db: SourceDatabase) -> None:
        """Write every change into `db`."""
        if self.flake_graph is not None:
            db.set_flake_graph(self.flake_graph)
        if self.nixos_options is not None:
            db.set_nixos_options(self.nixos_options)
        if self.roots is not None:
            if len(self.roots) > _U32_MAX:
                raise OverflowError("Length overflow")
            for index, root in enumerate(self.roots):
                sid = SourceRootId(index)
                for fid, _ in root.files():
                    db.set_file_source_root(fid, sid)
                db.set_source_root(sid, root)
        for file_id, content in self.file_changes:
            db.set_file_content(file_id, content)

    def __repr__(self) -> str:
        modified = sum(1 for _, content in self.file_changes if content)
        cleared = len(self.file_changes) - modified
        roots = None if self.roots is None else len(self.roots)
        return f"Change(roots={roots}, modified={modified}, cleared={cleared}, ..)"


class SourceDatabase:
    """Storage of the inputs: file contents, source roots and flake data."""

    def __init__(self) -> None:
        self._file_contents: dict[FileId, str] = {}
        self._source_roots: dict[SourceRootId, SourceRoot] = {}
        self._file_source_roots: dict[FileId, SourceRootId] = {}
        self._flake_graph = FlakeGraph()
        self._nixos_options: Any = {}

    def file_content(self, file_id: FileId) -> str:
        try:
            return self._file_contents[file_id]
        except KeyError:
            raise KeyError(f"no content set for {file_id!r}") from None

    def set_file_content(self, file_id: FileId, content: str) -> None:
        self._file_contents[file_id] = content

    def source_root(self, sid: SourceRootId) -> SourceRoot:
        try:
            return self._source_roots[sid]
        except KeyError:
            raise KeyError(f"no source root set for {sid!r}") from None

    def set_source_root(self, sid: SourceRootId, root: SourceRoot) -> None:
        self._source_roots[sid] = root

    def file_source_root(self, file_id: FileId) -> SourceRootId:
        try:
            return self._file_source_roots[file_id]
        except KeyError:
            raise KeyError(f"no source root set for {file_id!r}") from None

    def set_file_source_root(self, file_id: FileId, sid: SourceRootId) -> None:
        self._file_source_roots[file_id] = sid

    def flake_graph(self) -> FlakeGraph:
        return self._flake_graph

    def set_flake_graph(self, graph: FlakeGraph) -> None:
        self._flake_graph = graph

    def nixos_options(self) -> Any:
        return self._nixos_options

    def set_nixos_options(self, opts: Any) -> None:
        self._nixos_options = opts

    def source_root_flake_info(self, sid: SourceRootId) -> FlakeInfo | None:
        return self.flake_graph().nodes.get(sid)