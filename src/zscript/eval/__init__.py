"""Evaluator helper modules for the ZScript runtime."""

__all__ = [
    "bind",
    "blocks",
    "chains",
    "expr",
    "fn",
    "literals",
    "loops",
    "objects",
]
