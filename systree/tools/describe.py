"""Load system forest(s) from JSON, audit them for cycles, and print their structure.

The input is a JSON array of system records, as written by `SystemTree.to_json`::

    [{"sys_id": 11, "parent_sys_id": 0, "usr_data": "headquarters"},
     {"sys_id": 22, "parent_sys_id": 11, "usr_data": "sales"}]
"""

from .. import __version__

import argparse
import pathlib
import sys

from colorama import Fore, Style

from unpythonic import timer, uniqify

from .. import config
from ..forest import CycleError, FormatError, SystemTree, format_forest

def main() -> None:
    parser = argparse.ArgumentParser(description="""Audit system forest(s) for cycles, and print their structure.""",
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(dest="filenames", nargs="+", default=None, type=str, metavar="systems.json", help="JSON file(s), each containing an array of system records")
    parser.add_argument("-q", "--query", dest="queries", action="append", default=[], type=int, metavar="SYS_ID", help="Also print depth, height and direct children of this system ID. Can be given more than once.")
    parser.add_argument('-v', '--version', action='version', version=('%(prog)s ' + __version__))
    parser.add_argument("-V", "--verbose", dest="verbose", action="store_true", default=False, help="Print timing and summary information, and echo the loaded records.")
    opts = parser.parse_args()

    n_failed = 0
    for input_filename in uniqify(opts.filenames):
        input_path = pathlib.Path(input_filename).expanduser().resolve()
        print(f"{Style.BRIGHT}{input_filename}{Style.RESET_ALL}")
        if opts.verbose:
            print(f"    Loading '{input_filename}' (resolved to '{str(input_path)}')")

        try:
            with timer() as tim:
                datastore = SystemTree.from_json(input_path.read_bytes(), name=input_path.name)
        except (OSError, FormatError, CycleError) as exc:
            print(f"{Fore.RED}{Style.BRIGHT}ERROR: {type(exc).__name__}: {exc}{Style.RESET_ALL}")
            n_failed += 1
            continue

        if opts.verbose:
            n_systems = datastore.size()
            n_roots = len(datastore.get_roots())
            plural_s1 = "s" if n_systems != 1 else ""
            plural_s2 = "s" if n_roots != 1 else ""
            print(f"    Loaded and audited {n_systems} system{plural_s1} under {n_roots} root{plural_s2} in {tim.dt:0.6g}s.")
            print(datastore.to_json(indent=config.json_indent))

        print(f"{Fore.GREEN}{format_forest(datastore.describe_forest())}{Style.RESET_ALL}", end="")

        for sys_id in opts.queries:
            resolved = datastore.resolve(sys_id)
            if resolved is None:
                print(f"{Fore.YELLOW}{sys_id}: not found{Style.RESET_ALL}")
                continue
            child_ids = sorted(datastore.get_child_systems(sys_id).keys())
            print(f"{sys_id} ({type(resolved).__name__}): depth {datastore.get_depth(sys_id)}, height {datastore.get_height(sys_id)}, children {child_ids}")

    if n_failed:
        sys.exit(1)

if __name__ == "__main__":
    main()
