"""The system forest: systems (nodes), the cycle-free forest index, and its errors.

Example usage::

    from systree.forest import System, SystemTree, CycleError

    tree = SystemTree(name="org-units")
    tree.add_system(System(11, 0, {"name": "headquarters"}))
    tree.add_system(System(22, 11, {"name": "sales"}))
    try:
        tree.add_system(System(11, 22))  # 11 -> 22 -> 11
    except CycleError:
        ...
    tree.get_depth(22)  # -> 2
"""

__all__ = ["System", "SystemTree", "RealNode", "VirtualAnchor",
           "policy_warn", "policy_ignore", "policy_raise",
           "format_forest",
           "SystemTreeError", "CycleError", "NotFoundError", "FormatError", "DuplicateSystemError", "InvariantViolation"]

from .errors import SystemTreeError, CycleError, NotFoundError, FormatError, DuplicateSystemError, InvariantViolation
from .system import System
from .systemtree import SystemTree, RealNode, VirtualAnchor, policy_warn, policy_ignore, policy_raise, format_forest
