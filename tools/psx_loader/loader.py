"""
PS-X EXE loader.

Coordinates the load: header parsing, memory map construction and
realization, entry point setup and main() detection.

Usage:
    space = MemoryAddressSpace()
    result = PsxLoader().load(data, space)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from . import config
from .entry import apply_entry_point, locate_main
from .header import PsxExeHeader, parse_header
from .memmap import LoadFailure, Request, build_memory_map, realize
from .monitor import TaskMonitor
from .space import AddressSpace

logger = logging.getLogger(__name__)


class UnsupportedFormatError(ValueError):
    """The input is not a PS-X EXE."""


@dataclass(frozen=True)
class LoadSpec:
    """A way this loader can load an input."""
    loader: str
    language: str
    compiler: str
    image_base: int = 0
    preferred: bool = True


@dataclass
class LoadResult:
    """Outcome of a successful load."""
    header: PsxExeHeader
    requests: List[Request] = field(default_factory=list)
    failures: List[LoadFailure] = field(default_factory=list)
    main_address: Optional[int] = None

    @property
    def entry_point(self) -> int:
        return self.header.initial_pc

    def to_dict(self) -> dict:
        d = {
            "header": self.header.to_dict(),
            "entry_point": f"0x{self.entry_point:08X}",
            "main": None,
            "requests": len(self.requests),
            "failures": [f.to_dict() for f in self.failures],
        }
        if self.main_address is not None:
            d["main"] = f"0x{self.main_address:08X}"
        return d


def find_load_specs(data: bytes) -> List[LoadSpec]:
    """Return the load specs for data: one if it is a PS-X EXE, none otherwise."""
    if parse_header(data) is None:
        return []
    return [LoadSpec(
        loader=config.LOADER_NAME,
        language=config.LANGUAGE_ID,
        compiler=config.COMPILER_ID,
    )]


class PsxLoader:
    """
    Loads PS-X EXE images into an AddressSpace.

    Only an unrecognised header stops a load. Region, label and
    main() detection problems are logged and the load carries on.
    """

    def __init__(self, monitor: Optional[TaskMonitor] = None):
        self.monitor = monitor or TaskMonitor()

    def load(self, data: bytes, space: AddressSpace) -> LoadResult:
        """
        Load an image.

        Args:
            data: The complete file contents.
            space: Address space to populate.

        Returns:
            LoadResult with the header, emitted requests and failures.

        Raises:
            UnsupportedFormatError: the data is not a PS-X EXE.
            LoadCancelled: the monitor was cancelled mid-load.
        """
        header = parse_header(data)
        if header is None:
            self.monitor.set_message(f"{config.LOADER_NAME} : Cannot load")
            raise UnsupportedFormatError("Not a PS-X EXE: bad header magic")

        self.monitor.set_message(f"{config.LOADER_NAME} : Start loading")
        logger.info("PC 0x%08X  GP 0x%08X  code 0x%08X (+0x%X)  SP 0x%08X",
                    header.initial_pc, header.initial_gp, header.load_address,
                    header.code_size, header.stack_pointer)

        result = LoadResult(header=header)
        result.requests = build_memory_map(header)
        result.failures = realize(result.requests, space, data, self.monitor)

        apply_entry_point(space, header)

        self.monitor.check_cancelled()
        result.main_address = locate_main(space, header, self.monitor)

        self.monitor.set_message(f"{config.LOADER_NAME} : Loading done")
        return result

    def load_file(self, path: str, space: AddressSpace) -> LoadResult:
        """Read a file from disk and load it."""
        exe_file = Path(path)
        if not exe_file.exists():
            raise FileNotFoundError(f"PS-X EXE file not found: {path}")
        return self.load(exe_file.read_bytes(), space)
