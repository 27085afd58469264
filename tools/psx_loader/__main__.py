"""
CLI entry point for the PS-X EXE loader.

Usage:
    python -m tools.psx_loader <path_to_exe> [options]

Examples:
    python -m tools.psx_loader SLUS_000.01 --stats-only -v
    python -m tools.psx_loader SLUS_000.01 -o output/
"""

import argparse
import logging
import sys
import time

from . import config
from .loader import PsxLoader, UnsupportedFormatError
from .monitor import LoadCancelled, TaskMonitor
from .output import OutputWriter, print_stats
from .space import MemoryAddressSpace


def main():
    parser = argparse.ArgumentParser(
        prog="tools.psx_loader",
        description="PS-X EXE Loader - "
                    "Reconstructs the PlayStation address space of an executable",
    )

    parser.add_argument(
        "exe_path",
        help="Path to the PS-X EXE file",
    )
    parser.add_argument(
        "-o", "--output",
        dest="output_dir",
        default=None,
        help="Output directory for JSON databases "
             f"(default: {config.DEFAULT_OUTPUT_DIR}/)",
    )
    parser.add_argument(
        "--stats-only",
        action="store_true",
        help="Print statistics only, don't write output files",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with progress information",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    def progress(message):
        if args.verbose:
            print(message)

    try:
        t_start = time.time()
        space = MemoryAddressSpace()
        result = PsxLoader(TaskMonitor(progress)).load_file(args.exe_path, space)
        elapsed = time.time() - t_start

        if args.stats_only or args.verbose:
            print_stats(space, result, args.exe_path)

        if not args.stats_only:
            output_dir = args.output_dir or config.DEFAULT_OUTPUT_DIR
            OutputWriter(output_dir, space, result, args.exe_path).write_all(
                verbose=args.verbose)
            if args.verbose:
                print(f"\n  Output written to {output_dir}/")

        print(f"Done in {elapsed:.2f}s")
        sys.exit(0)

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except UnsupportedFormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (KeyboardInterrupt, LoadCancelled):
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(2)


if __name__ == "__main__":
    main()
