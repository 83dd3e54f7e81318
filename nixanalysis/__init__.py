"""Semantic analysis of lowered Nix modules: name resolution, module kinds, liveness and file references."""

__version__ = "0.1.0"
__all__ = [
    "base",
    "builtins",
    "database",
    "defs",
    "diagnostic",
    "kind",
    "liveness",
    "nameres",
    "path",
]