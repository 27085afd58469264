"""
Output writers for the loader.

Produces JSON databases (memory_map.json, labels.json, summary.json)
and a printed summary of a load.
"""

import json
from pathlib import Path
from typing import List

from . import config
from .labels import LabelType
from .loader import LoadResult
from .space import MemoryAddressSpace


class OutputWriter:
    """
    Writes the loaded address space to JSON files.
    """

    def __init__(self, output_dir: str, space: MemoryAddressSpace,
                 result: LoadResult, exe_path: str = ""):
        self.output_dir = Path(output_dir)
        self.space = space
        self.result = result
        self.exe_path = exe_path

    def write_all(self, verbose: bool = False) -> None:
        """Write all output files."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if verbose:
            print(f"  Writing JSON databases to {self.output_dir}/")

        self._write_summary()
        self._write_memory_map()
        self._write_labels()

    def _write_summary(self) -> None:
        summary = {
            "binary": self.exe_path,
            **self.result.to_dict(),
            "regions": len(self.space.regions()),
            "labels": self.space.labels.count(),
            "register_defaults": {
                reg: f"0x{val:08X}"
                for reg, val in sorted(self.space.register_defaults.items())
            },
            "entry_points": [f"0x{a:08X}" for a in self.space.entry_points],
        }
        with open(self.output_dir / config.SUMMARY_FILENAME, 'w') as f:
            json.dump(summary, f, indent=2)

    def _write_memory_map(self) -> None:
        data = [r.to_dict() for r in self.space.regions()]
        with open(self.output_dir / config.MEMORY_MAP_FILENAME, 'w') as f:
            json.dump(data, f, indent=2)

    def _write_labels(self) -> None:
        data = self.space.labels.to_list()
        with open(self.output_dir / config.LABELS_FILENAME, 'w') as f:
            json.dump(data, f, indent=2)


def format_memory_map(space: MemoryAddressSpace) -> List[str]:
    """One line per region: range, permissions, name, mirror base."""
    lines = []
    for r in space.regions():
        line = (f"    0x{r.address:08X}-0x{r.end - 1:08X}  {r.permissions}  "
                f"{r.name:<14s} {r.size:>9,d}")
        if r.is_mirror:
            line += f"  -> 0x{r.mirror_of:08X}"
        lines.append(line)
    return lines


def print_stats(space: MemoryAddressSpace, result: LoadResult,
                exe_path: str = "") -> None:
    """Print load statistics to stdout."""
    header = result.header

    print(f"\n{'=' * 60}")
    print(f"  PS-X EXE Load Summary")
    print(f"{'=' * 60}")
    if exe_path:
        print(f"  Binary: {exe_path}")
    if header.marker:
        print(f"  Marker: {header.marker}")
    print(f"  Entry: 0x{header.initial_pc:08X}  "
          f"GP: 0x{header.initial_gp:08X}  SP: 0x{header.stack_pointer:08X}")
    print(f"  Code:  0x{header.load_address:08X}  "
          f"({header.code_size / 1024:.1f} KB)")
    if result.main_address is not None:
        print(f"  main:  0x{result.main_address:08X}")
    else:
        print(f"  main:  not found")

    mirrors = sum(1 for r in space.regions() if r.is_mirror)
    print(f"\n  Regions:          {len(space.regions()):>10,d}")
    print(f"    mirrors:        {mirrors:>10,d}")
    print(f"  Labels:           {space.labels.count():>10,d}")
    print(f"    registers:      {space.labels.count_by_type(LabelType.REGISTER):>10,d}")
    print(f"  Failures:         {len(result.failures):>10,d}")

    print(f"\n  Memory map:")
    for line in format_memory_map(space):
        print(line)

    if result.failures:
        print(f"\n  Rejected requests:")
        for failure in result.failures:
            d = failure.to_dict()
            print(f"    {d['kind']:<14s} {d['name']:<14s} {d['address']}  {d['error']}")

    print(f"\n{'=' * 60}")
