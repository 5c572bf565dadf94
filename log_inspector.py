"""CLI log inspector: list the active file and its archives, or print one of them."""

import argparse
import os
import sys

from logrotor.config import load_config
from logrotor.inspector import format_size, list_log_files, read_file


def main():
    parser = argparse.ArgumentParser(description="Inspect a rotating log file and its archives")
    parser.add_argument("--file", default=os.environ.get("LOG_FILE"),
                        help="Path of the active log file (defaults to the configured LOG_FILE)")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--list", action="store_true", help="List the active file and archives, oldest first")
    group.add_argument("--read", metavar="FILENAME", help="Print a file from the log directory")
    args = parser.parse_args()

    config = load_config()
    path = args.file or (config.file.path if config.file else None)
    if not path:
        print("Error: no log file given (use --file or LOG_FILE)", file=sys.stderr)
        sys.exit(2)
    rotation = config.file.rotation if config.file else None

    if args.list:
        files = list_log_files(path, rotation)
        if not files:
            print("No log files found.")
            return
        for name, size in files:
            print(f"  {name}  ({format_size(size)})")

    elif args.read:
        try:
            sys.stdout.write(read_file(os.path.dirname(path) or ".", args.read))
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
