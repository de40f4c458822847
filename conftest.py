"""pytest configuration.

Being at the repository root, this file also puts the root on `sys.path`, so that the tests
run against the in-tree `systree` package also when it is not installed.
"""
