"""Diagnostics reported by the analysis."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, IntEnum

from .base import FileRange, TextRange


class DiagnosticKind(Enum):
    """What a diagnostic is about; the value is its code."""

    SYNTAX_ERROR = "syntax_error"
    INVALID_DYNAMIC = "invalid_dynamic"
    DUPLICATED_KEY = "duplicated_key"
    DUPLICATED_PARAM = "duplicated_param"
    EMPTY_INHERIT = "empty_inherit"
    EMPTY_LET_IN = "empty_let_in"
    LET_ATTRSET = "let_attrset"
    URI_LITERAL = "uri_literal"
    MERGE_PLAIN_REC_ATTRSET = "merge_plain_rec_attrset"
    MERGE_REC_ATTRSET = "merge_rec_attrset"
    UNDEFINED_NAME = "undefined_name"
    UNUSED_BINDING = "unused_binding"
    UNUSED_WITH = "unused_with"
    UNUSED_REC = "unused_rec"


class Severity(IntEnum):
    WARNING = 0
    ERROR = 1
    INCOMPLETE_SYNTAX = 2


_ERRORS = frozenset(
    {
        DiagnosticKind.SYNTAX_ERROR,
        DiagnosticKind.INVALID_DYNAMIC,
        DiagnosticKind.DUPLICATED_KEY,
        DiagnosticKind.DUPLICATED_PARAM,
        DiagnosticKind.UNDEFINED_NAME,
    }
)

_UNNECESSARY = frozenset(
    {
        DiagnosticKind.EMPTY_INHERIT,
        DiagnosticKind.UNUSED_BINDING,
        DiagnosticKind.UNUSED_WITH,
        DiagnosticKind.UNUSED_REC,
    }
)

_DEPRECATED = frozenset({DiagnosticKind.LET_ATTRSET, DiagnosticKind.URI_LITERAL})

_MESSAGES = {
    DiagnosticKind.INVALID_DYNAMIC: "Invalid location of dynamic attribute",
    DiagnosticKind.DUPLICATED_KEY: "Duplicated name definition",
    DiagnosticKind.DUPLICATED_PARAM: "Duplicated parameter",
    DiagnosticKind.EMPTY_INHERIT: "Nothing inherited",
    DiagnosticKind.EMPTY_LET_IN: "Empty let-in",
    DiagnosticKind.LET_ATTRSET: "`let { ... }` is deprecated. Use `let ... in ...` instead",
    DiagnosticKind.URI_LITERAL: "URL literal is confusing and deprecated. Use strings instead",
    DiagnosticKind.MERGE_PLAIN_REC_ATTRSET: (
        "Merging non-rec-attrset with rec-attrset, the latter `rec` is implicitly ignored"
    ),
    DiagnosticKind.MERGE_REC_ATTRSET: (
        "Merging rec-attrset with other attrsets or attrpath. Merged values can "
        "unexpectedly reference each other remotely as in a single `rec { ... }`"
    ),
    DiagnosticKind.UNDEFINED_NAME: "Undefined name",
    DiagnosticKind.UNUSED_BINDING: "Unused binding",
    DiagnosticKind.UNUSED_WITH: "Unused `with`",
    DiagnosticKind.UNUSED_REC: "Unused `rec`",
}


def _kind_name(kind: DiagnosticKind) -> str:
    return "".join(part.capitalize() for part in kind.value.split("_"))


@dataclass(frozen=True)
class Diagnostic:
    """A located problem, with optional related notes."""

    range: TextRange
    kind: DiagnosticKind
    notes: tuple[tuple[FileRange, str], ...] = ()
    syntax_message: str | None = None

    def __post_init__(self) -> None:
        if (self.kind is DiagnosticKind.SYNTAX_ERROR) != (self.syntax_message is not None):
            raise ValueError("a syntax message goes with syntax errors only")
        object.__setattr__(self, "notes", tuple(self.notes))

    @classmethod
    def syntax_error(cls, range: TextRange, error_message: str) -> Diagnostic:
        return cls(range, DiagnosticKind.SYNTAX_ERROR, syntax_message=error_message)

    def with_note(self, frange: FileRange, message: str) -> Diagnostic:
        """A copy with one more note appended."""
        return replace(self, notes=(*self.notes, (frange, str(message))))

    def code(self) -> str:
        return self.kind.value

    def severity(self) -> Severity:
        return Severity.ERROR if self.kind in _ERRORS else Severity.WARNING

    def message(self) -> str:
        if self.kind is DiagnosticKind.SYNTAX_ERROR:
            return self.syntax_message or ""
        return _MESSAGES[self.kind]

    def is_unnecessary(self) -> bool:
        return self.kind in _UNNECESSARY

    def is_deprecated(self) -> bool:
        return self.kind in _DEPRECATED

    def debug_display(self) -> str:
        """A compact text form: range, kind and the ranges of the notes."""
        if self.kind is DiagnosticKind.SYNTAX_ERROR:
            kind = f"SyntaxError({self.syntax_message})"
        else:
            kind = _kind_name(self.kind)
        lines = [f"{self.range}: {kind}"]
        # All notes currently live in the same file, so the file is omitted.
        lines.extend(f"    {frange.range}: {msg}" for frange, msg in self.notes)
        return "\n".join(lines)