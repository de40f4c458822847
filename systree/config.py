"""Global configuration for systree.

These are defaults; most of them can be overridden per `SystemTree` instance.
"""

from unpythonic import sym

# What to do when `SystemTree.add_system` is given a system that is already in the tree, unchanged
# (same `sys_id`, same `parent_sys_id`, same payload).
#
# This is harmless to the structure (nothing changes), but usually means the caller has lost track
# of what it has already inserted. One of:
#
#   sym("warn"): log a warning, and treat the add as a success.
#   sym("ignore"): treat the add as a success, silently.
#   sym("raise"): raise `DuplicateSystemError`.
#
duplicate_add_policy = sym("warn")

# Systems are identified by unsigned 32-bit integers.
max_sys_id = 0xFFFFFFFF

# `max_depth` value that means "no depth limit" in subtree queries. Any value <= 0 also works.
unbounded_depth = 0

# Per-level indent marker used when rendering the forest description as text.
describe_level_marker = "___ "

# Indentation for JSON output in the command-line tool (verbose mode). `None` = compact.
json_indent = 2
