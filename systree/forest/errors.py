"""Exception types raised by the system forest.

Each one also derives from the builtin exception that would otherwise be raised for the same
condition, so that code catching e.g. `KeyError` for a missing system keeps working.
"""

__all__ = ["SystemTreeError",
           "CycleError", "NotFoundError", "FormatError", "DuplicateSystemError",
           "InvariantViolation"]

class SystemTreeError(Exception):
    """Base class for all systree errors."""

class CycleError(SystemTreeError, ValueError):
    """Accepting (or validating) a system would create (or reveals) a circular ancestor chain.

    Recoverable. When raised by `SystemTree.add_system`, the tree has not been modified.
    """

class NotFoundError(SystemTreeError, KeyError):
    """No system with the given ID exists."""

    def __str__(self) -> str:  # `KeyError` would show the message quoted
        return str(self.args[0]) if self.args else ""

class FormatError(SystemTreeError, ValueError):
    """Could not decode a system (or a list of systems) from its serialized form."""

class DuplicateSystemError(SystemTreeError, ValueError):
    """An identical system was re-added. Only raised when the duplicate policy is `raise`."""

class InvariantViolation(SystemTreeError, RuntimeError):
    """A traversal found a cycle in a structure that should be acyclic.

    This means the tree is corrupt (e.g. someone edited `systems` or `tree` directly, and did not run
    the cycle audit), not that the caller passed bad input. The tree should be discarded.
    """
