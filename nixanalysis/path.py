"""Path literals: their anchor and a normalized relative part."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .base import FileId

_SUPERS_MAX = 255


class AnchorKind(Enum):
    RELATIVE = "relative"
    ABSOLUTE = "absolute"
    HOME = "home"
    SEARCH = "search"


@dataclass(frozen=True)
class PathAnchor:
    """Where a path literal starts from."""

    kind: AnchorKind
    file_id: FileId | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if (self.kind is AnchorKind.RELATIVE) != (self.file_id is not None):
            raise ValueError("a file id goes with relative anchors only")
        if (self.kind is AnchorKind.SEARCH) != (self.name is not None):
            raise ValueError("a search name goes with search anchors only")

    @classmethod
    def relative(cls, file_id: FileId) -> PathAnchor:
        """Relative to the directory of `file_id`."""
        return cls(AnchorKind.RELATIVE, file_id=file_id)

    @classmethod
    def absolute(cls) -> PathAnchor:
        return cls(AnchorKind.ABSOLUTE)

    @classmethod
    def home(cls) -> PathAnchor:
        return cls(AnchorKind.HOME)

    @classmethod
    def search(cls, name: str) -> PathAnchor:
        """A `<name/...>` search path."""
        return cls(AnchorKind.SEARCH, name=name)


@dataclass(frozen=True)
class PathData:
    """An anchor, a count of leading `..` and a `/`-separated relative path."""

    anchor: PathAnchor
    supers: int
    relative_path: str

    def __post_init__(self) -> None:
        if not 0 <= self.supers <= _SUPERS_MAX:
            raise ValueError(f"supers out of range: {self.supers}")

    @classmethod
    def normalize(cls, anchor: PathAnchor, segments: str) -> PathData:
        """Resolve `.` and `..` in `segments` relative to `anchor`."""
        parts: list[str] = []
        supers = 0
        for seg in segments.split("/"):
            if not seg or seg == ".":
                continue
            if seg != "..":
                parts.append(seg)
            elif parts:
                parts.pop()
            elif anchor.kind is not AnchorKind.ABSOLUTE:
                # Extra ".." has no effect for absolute paths.
                supers = min(supers + 1, _SUPERS_MAX)
        return cls(anchor, supers, "/".join(parts))