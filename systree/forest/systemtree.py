"""Forest of systems that is guaranteed to never contain a cycle.

Each system declares its parent by ID. The forest keeps two views of the same systems:
a flat index by system ID, and an adjacency index by parent ID. Adding a system that would
close a loop in the parent chain is rejected.
"""

__all__ = ["SystemTree", "RealNode", "VirtualAnchor",
           "policy_warn", "policy_ignore", "policy_raise",
           "format_forest"]

import logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

import copy
import io
import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from unpythonic import partition, sym
from unpythonic.env import env

from .. import config
from .errors import CycleError, DuplicateSystemError, FormatError, InvariantViolation, NotFoundError
from .system import System

# Duplicate re-add policies. See `config.duplicate_add_policy`.
policy_warn = sym("warn")
policy_ignore = sym("ignore")
policy_raise = sym("raise")
_duplicate_policies = (policy_warn, policy_ignore, policy_raise)

@dataclass(frozen=True)
class RealNode:
    """`SystemTree.resolve` result: the ID names a system stored in the tree."""
    system: System

    @property
    def sys_id(self) -> int:
        return self.system.sys_id

@dataclass(frozen=True)
class VirtualAnchor:
    """`SystemTree.resolve` result: the ID has (or had) children in the tree, but no system of its own.

    A virtual anchor is a root of the forest.
    """
    sys_id: int

class SystemTree:
    def __init__(self, name: str = "systree", duplicate_policy: Optional[sym] = None):
        """Forest of systems, with cycle detection.

        `name`: Human-readable name of this forest. Used in log and error messages.
        `duplicate_policy`: What to do when an identical system is added again.
                            One of `policy_warn`, `policy_ignore`, `policy_raise`.
                            If `None`, use `config.duplicate_add_policy`.

        Each system has exactly one parent ID, but may have many children, making a forest structure.
        The parent ID does not need to name a system in the tree. If it doesn't, the system is a root,
        hanging under a *virtual anchor* that has that ID. By convention, top-level systems use parent ID `0`.

        We store the systems twice, in two plain dictionaries:

            self.systems = {sys_id: System, ...}                     # flat index
            self.tree = {parent_sys_id: {sys_id: System, ...}, ...}  # adjacency index

        A key of `self.tree` that is not a key of `self.systems` is a virtual anchor.

        Mutate only via `add_system` and `del_system`, which keep the two indices consistent and reject cycles.
        If you must fill `self.systems` directly (e.g. a bulk import), call `rebuild_index` afterward.
        It rebuilds `self.tree` and runs the full cycle audit, `check_cycles`.

        Deleting a system does not delete its subtree. The orphaned children stay under their parent ID,
        which now becomes a virtual anchor.

        **Thread safety**

        None. This is a single-threaded datastore. If you need to share it between threads,
        lock the whole `SystemTree` yourself; a reader running concurrently with `add_system`
        may see the two indices out of sync.
        """
        if duplicate_policy is None:
            duplicate_policy = config.duplicate_add_policy
        if duplicate_policy not in _duplicate_policies:
            raise ValueError(f"SystemTree.__init__: unknown duplicate policy {duplicate_policy!r}; expected one of {_duplicate_policies}")
        self.name = name
        self.duplicate_policy = duplicate_policy
        self.systems: Dict[int, System] = {}
        self.tree: Dict[int, Dict[int, System]] = {}

    # --------------------------------------------------------------------------------
    # Bulk construction

    @classmethod
    def from_systems(cls, systems: Iterable[System], name: str = "systree", duplicate_policy: Optional[sym] = None) -> "SystemTree":
        """Bulk-load `systems` into a new tree, and audit it.

        This skips the per-system cycle checks of `add_system`, and instead runs the linear-time
        `check_cycles` once, at the end. If several systems have the same ID, the last one wins.

        Raises `CycleError` if the systems contain a cycle.
        """
        datastore = cls(name=name, duplicate_policy=duplicate_policy)
        for system in systems:
            datastore.systems[system.sys_id] = copy.deepcopy(system)
        datastore.rebuild_index()
        return datastore

    @classmethod
    def from_json(cls, text: Union[str, bytes], name: str = "systree", duplicate_policy: Optional[sym] = None) -> "SystemTree":
        """Bulk-load a tree from a JSON array of system records (see `to_json`).

        Raises `FormatError` if `text` is not such an array, and `CycleError` if the systems contain a cycle.
        """
        try:
            records = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise FormatError(f"SystemTree.from_json: could not parse input as JSON: {exc}") from exc
        if not isinstance(records, list):
            raise FormatError(f"SystemTree.from_json: expected a JSON array of system records, got {type(records)}")
        systems = [System.from_dict(record) for record in records]
        return cls.from_systems(systems, name=name, duplicate_policy=duplicate_policy)

    def to_json(self, indent: Optional[int] = None) -> str:
        """Encode all systems as a JSON array of system records, in insertion order.

        The adjacency index is derived data, so it is not saved. `from_json` rebuilds it.
        """
        return json.dumps([system.to_dict() for system in self.systems.values()], indent=indent)

    def rebuild_index(self) -> None:
        """Rebuild `self.tree` from scratch, from `self.systems`, and then run `check_cycles`.

        Use this after inserting systems into `self.systems` directly.

        If `check_cycles` raises, `self.tree` is left populated, but the structure is not acyclic,
        so the whole `SystemTree` should be discarded.
        """
        self.tree.clear()
        for sys_id, system in self.systems.items():
            if sys_id != system.sys_id:
                raise InvariantViolation(f"SystemTree.rebuild_index: forest '{self.name}': system {system} is stored under the wrong ID {sys_id}")
            self.tree.setdefault(system.parent_sys_id, {})[sys_id] = system
        self.check_cycles()

        n_systems = len(self.systems)
        n_roots = len(self.get_roots())
        plural_s1 = "s" if n_systems != 1 else ""
        plural_s2 = "s" if n_roots != 1 else ""
        logger.info(f"SystemTree.rebuild_index: forest '{self.name}': indexed {n_systems} system{plural_s1} under {n_roots} root{plural_s2}.")

    def check_cycles(self) -> None:
        """Audit the whole forest for cycles. O(n).

        Independent of the incremental checks done by `add_system`. Walks up the parent chain of each system,
        and remembers which IDs have already been proven to lead to a root, so that no chain is walked twice.

        Raises `CycleError` on the first cycle found (including a system that is its own parent).
        """
        done = set()
        for sys_id, system in self.systems.items():
            if sys_id in done:
                continue
            if not system.is_valid():
                raise CycleError(f"SystemTree.check_cycles: forest '{self.name}': system {system} is its own parent")
            visited = {sys_id}
            parent_id = system.parent_sys_id
            while parent_id not in done:  # a done ID is known to lead to a root
                if parent_id in visited:
                    raise CycleError(f"SystemTree.check_cycles: forest '{self.name}' has a cycle: walking up from system {sys_id}, reached {parent_id} again")
                visited.add(parent_id)
                parent = self.systems.get(parent_id)
                if parent is None:  # reached a root
                    break
                parent_id = parent.parent_sys_id
            done.update(visited)

    def clear(self) -> None:
        """Delete all systems from the forest."""
        self.systems.clear()
        self.tree.clear()

    # --------------------------------------------------------------------------------
    # Mutation

    def add_system(self, system: System) -> None:
        """Add `system` to the forest, or replace the existing system with the same ID.

        The parent chain of the new system is checked first. If the new system would be its own ancestor,
        `CycleError` is raised, and the forest is not modified. This holds also when replacing:
        the old system stays in place.

        If an identical system (same ID, same parent, same payload) is already in the forest,
        nothing changes; what happens then depends on `self.duplicate_policy`.

        The forest stores a deep copy of `system`.
        """
        if not system.is_valid():
            raise CycleError(f"SystemTree.add_system: forest '{self.name}': system {system} is its own parent")

        old_system = self.systems.get(system.sys_id)
        if old_system is not None and old_system == system:
            self._on_duplicate(system)
            return

        self._check_ancestors(system)

        system = copy.deepcopy(system)
        if old_system is not None:
            logger.debug(f"SystemTree.add_system: forest '{self.name}': replacing {old_system} with {system}")
            self.del_system(system.sys_id)
        else:
            logger.debug(f"SystemTree.add_system: forest '{self.name}': adding {system}")
        self.systems[system.sys_id] = system
        self.tree.setdefault(system.parent_sys_id, {})[system.sys_id] = system

    def _check_ancestors(self, system: System) -> None:
        """Walk up from the declared parent of `system`. Raise `CycleError` if the walk comes back to `system`."""
        parent_id = system.parent_sys_id
        visited = {parent_id}
        parent = self.systems.get(parent_id)
        while parent is not None:
            parent_id = parent.parent_sys_id
            if parent_id == system.sys_id or parent_id in visited:
                raise CycleError(f"SystemTree.add_system: forest '{self.name}': adding {system} would create a cycle through system {parent_id}")
            visited.add(parent_id)
            parent = self.systems.get(parent_id)

    def _on_duplicate(self, system: System) -> None:
        if self.duplicate_policy is policy_raise:
            raise DuplicateSystemError(f"SystemTree.add_system: forest '{self.name}': re-adding identical system {system}")
        if self.duplicate_policy is policy_warn:
            logger.warning(f"SystemTree.add_system: forest '{self.name}': re-adding identical system {system}. Ignoring.")

    def del_system(self, sys_id: int) -> System:
        """Delete system `sys_id` from the forest, and return the deleted system.

        Its children are not deleted. They stay where they are, under `sys_id`, which becomes a virtual anchor.
        """
        try:
            system = self.systems.pop(sys_id)
        except KeyError:
            raise NotFoundError(f"SystemTree.del_system: forest '{self.name}': no such system {sys_id}") from None
        siblings = self.tree.get(system.parent_sys_id)
        if siblings is not None:
            siblings.pop(sys_id, None)
        logger.debug(f"SystemTree.del_system: forest '{self.name}': deleted {system}")
        return system

    # --------------------------------------------------------------------------------
    # Queries

    def get_system(self, sys_id: int) -> Optional[System]:
        """Return system `sys_id`, or `None` if not found."""
        return self.systems.get(sys_id)

    def resolve(self, sys_id: int) -> Optional[Union[RealNode, VirtualAnchor]]:
        """Classify `sys_id`.

        Return `RealNode` if a system with that ID exists, `VirtualAnchor` if the ID only appears
        as a parent ID (it is a root of the forest), and `None` if the forest has never heard of it.
        """
        system = self.systems.get(sys_id)
        if system is not None:
            return RealNode(system)
        if sys_id in self.tree:
            return VirtualAnchor(sys_id)
        return None

    def get_roots(self) -> List[int]:
        """Return the IDs of all virtual anchors (i.e. roots of the forest), in ascending order.

        We don't keep track of these separately; this is an O(n) scan of the adjacency index.
        """
        anchor_ids, _ = partition(pred=lambda parent_id: parent_id in self.systems,
                                  iterable=self.tree.keys())
        return sorted(anchor_ids)

    def get_child_systems(self, sys_id: int) -> Dict[int, System]:
        """Return the direct children of `sys_id`, as `{sys_id: System, ...}`. Empty if none.

        `sys_id` may also be a virtual anchor.
        """
        children, _ = self.get_subtree(sys_id, max_depth=1)
        return children

    def get_subtree(self, sys_id: int, max_depth: int = config.unbounded_depth) -> Tuple[Dict[int, System], int]:
        """Breadth-first search for all descendants of `sys_id`, down to `max_depth` levels.

        `max_depth`: How many levels to descend. If `<= 0`, no limit.

        Returns `(descendants, levels)`, where `descendants` is `{sys_id: System, ...}` (not including
        `sys_id` itself), and `levels` is the number of non-empty levels below `sys_id` that were traversed.

        Raises `InvariantViolation` if the adjacency index contains a cycle.
        """
        descendants: Dict[int, System] = {}
        levels = 0
        frontier = [sys_id]
        while max_depth <= 0 or levels < max_depth:
            next_frontier = []
            for parent_id in frontier:
                for child_id, child in self.tree.get(parent_id, {}).items():
                    if child_id == sys_id or child_id in descendants:
                        raise InvariantViolation(f"SystemTree.get_subtree: forest '{self.name}' has a cycle: starting from {sys_id}, reached {child_id} again (as child of {parent_id})")
                    descendants[child_id] = child
                    next_frontier.append(child_id)
            if not next_frontier:
                break
            levels += 1
            frontier = next_frontier
        return descendants, levels

    def get_ancestors(self, sys_id: int) -> List[int]:
        """Return the parent chain of system `sys_id`, as a list of IDs.

        The nearest parent comes first. The last item is the root (the first ID in the chain
        that has no system of its own, i.e. a virtual anchor).

        Raises `NotFoundError` if `sys_id` is not a system in the forest, and `InvariantViolation`
        if the parent chain contains a cycle.
        """
        system = self.systems.get(sys_id)
        if system is None:
            raise NotFoundError(f"SystemTree.get_ancestors: forest '{self.name}': no such system {sys_id}")
        ancestors = []
        visited = {sys_id}
        parent_id = system.parent_sys_id
        while True:
            if parent_id in visited:
                raise InvariantViolation(f"SystemTree.get_ancestors: forest '{self.name}' has a cycle: walking up from system {sys_id}, reached {parent_id} again")
            visited.add(parent_id)
            ancestors.append(parent_id)
            parent = self.systems.get(parent_id)
            if parent is None:
                break
            parent_id = parent.parent_sys_id
        return ancestors

    def get_depth(self, sys_id: int) -> int:
        """Return the length of the path from the root down to `sys_id`.

        A virtual anchor has depth 0, and a system hanging directly under one has depth 1.
        If the forest has never heard of `sys_id`, return -1.
        """
        resolved = self.resolve(sys_id)
        if resolved is None:
            return -1
        if isinstance(resolved, VirtualAnchor):
            return 0
        return len(self.get_ancestors(sys_id))

    def get_height(self, sys_id: int) -> int:
        """Return the length of the longest path from `sys_id` down to a leaf.

        A leaf has height 0. If the forest has never heard of `sys_id`, return -1.
        """
        if self.resolve(sys_id) is None:
            return -1
        _, levels = self.get_subtree(sys_id)
        return levels

    def size(self) -> int:
        """Return the number of systems in the forest. Virtual anchors are not counted."""
        return len(self.systems)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, sys_id: int) -> bool:
        return sys_id in self.systems

    # --------------------------------------------------------------------------------
    # Diagnostics

    def describe_forest(self) -> List[env]:
        """Return a breadth-first, level-by-level description of the whole forest.

        The result is a list of `env(root_id, level, parent_id, child_ids)`, one tree after another,
        in ascending order of root ID:

          - For each root, a level-0 entry, with `parent_id == root_id` and `child_ids` the root's children.
          - For each system found at level `k >= 1` under that root, an entry with `level=k`,
            `parent_id` the system's ID, and `child_ids` its children (empty for a leaf).

        `child_ids` are sorted ascending. Use `format_forest` to render the result as text.

        Raises `InvariantViolation` if a cycle is found.
        """
        entries = []
        for root_id in self.get_roots():
            seen = set()
            frontier = [root_id]
            level = 0
            while frontier:
                next_frontier = []
                for parent_id in frontier:
                    child_ids = sorted(self.tree.get(parent_id, {}).keys())
                    for child_id in child_ids:
                        if child_id == root_id or child_id in seen:
                            raise InvariantViolation(f"SystemTree.describe_forest: forest '{self.name}' has a cycle: under root {root_id}, reached {child_id} again (as child of {parent_id})")
                        seen.add(child_id)
                    entries.append(env(root_id=root_id, level=level, parent_id=parent_id, child_ids=child_ids))
                    next_frontier.extend(child_ids)
                frontier = next_frontier
                level += 1
        return entries

    def __repr__(self) -> str:
        plural_s = "s" if len(self.systems) != 1 else ""
        return f"<SystemTree '{self.name}': {len(self.systems)} system{plural_s}>"

    def __str__(self) -> str:
        """Return a human-readable, multiline rendering of the forest. Mainly for debugging."""
        return f"{self!r}\n{format_forest(self.describe_forest())}"

def format_forest(entries: List[env], level_marker: Optional[str] = None) -> str:
    """Render the output of `SystemTree.describe_forest` as a multiline string.

    `level_marker`: Indent for one level. If `None`, use `config.describe_level_marker`.

    Example::

        0(root): [11]
        ___ 11: [22, 55]
        ___ ___ 22: [33, 44]
        ___ ___ 55: []
    """
    if level_marker is None:
        level_marker = config.describe_level_marker
    output = io.StringIO()
    for entry in entries:
        children_str = ", ".join(str(child_id) for child_id in entry.child_ids)
        if entry.level == 0:
            output.write(f"{entry.root_id}(root): [{children_str}]\n")
        else:
            output.write(f"{level_marker * entry.level}{entry.parent_id}: [{children_str}]\n")
    return output.getvalue()
