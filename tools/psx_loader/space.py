"""
Address-space capability used by the loader.

AddressSpace is the interface the loader talks to: create regions and
mirrors, type data, label, disassemble one instruction, and seed the
default register context. MemoryAddressSpace is the in-memory
implementation used by the CLI and the tests.
"""

import mmap
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .engine import Instruction, MipsDecoder
from .labels import Label, LabelManager, LabelType

ADDRESS_LIMIT = 0x100000000

# Private anonymous mappings read as zero pages until written
_MAP_FLAGS = {"flags": mmap.MAP_PRIVATE} if hasattr(mmap, "MAP_PRIVATE") else {}


def _allocate(size: int) -> mmap.mmap:
    """Zero-filled storage, committed page by page as it is written."""
    return mmap.mmap(-1, size, **_MAP_FLAGS)


class RegionError(Exception):
    """A region or mirror could not be created or accessed."""


class RegionConflictError(RegionError):
    """The requested range overlaps an existing region."""


@dataclass
class Region:
    """
    A mapped address range.

    Regular regions own their storage. Mirrors share the storage of
    their base region at an offset, so writes through either side are
    visible through the other.
    """
    name: str
    address: int
    size: int
    read: bool
    write: bool
    execute: bool
    storage: mmap.mmap = field(repr=False)
    offset: int = 0
    mirror_of: Optional[int] = None   # base address for mirrors
    initialized: bool = False         # backed by file bytes

    @property
    def end(self) -> int:
        return self.address + self.size

    @property
    def is_mirror(self) -> bool:
        return self.mirror_of is not None

    @property
    def view(self) -> memoryview:
        return memoryview(self.storage)[self.offset:self.offset + self.size]

    @property
    def permissions(self) -> str:
        return (("r" if self.read else "-") +
                ("w" if self.write else "-") +
                ("x" if self.execute else "-"))

    def contains(self, address: int) -> bool:
        return self.address <= address < self.end

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "start": f"0x{self.address:08X}",
            "end": f"0x{self.end:08X}",
            "size": self.size,
            "permissions": self.permissions,
            "initialized": self.initialized,
        }
        if self.mirror_of is not None:
            d["mirror_of"] = f"0x{self.mirror_of:08X}"
        return d


class AddressSpace(ABC):
    """Host primitives the loader needs."""

    @abstractmethod
    def create_region(self, name: str, address: int, size: int,
                      read: bool, write: bool, execute: bool,
                      data: Optional[bytes] = None) -> Region:
        """Create a region, zero-filled unless data is given."""

    @abstractmethod
    def create_mirror(self, name: str, base_address: int, address: int,
                      size: int) -> Region:
        """Alias size bytes at base_address to a new address."""

    @abstractmethod
    def create_data(self, address: int, width: int, count: int = 1) -> None:
        """Type count items of width bits at address."""

    @abstractmethod
    def create_label(self, address: int, name: str,
                     label_type: LabelType = LabelType.DATA) -> Label:
        """Bind a name to an address."""

    @abstractmethod
    def create_function(self, address: int, name: str) -> None:
        """Declare a function starting at address."""

    @abstractmethod
    def add_entry_point(self, address: int) -> None:
        """Mark address as a program entry point."""

    @abstractmethod
    def set_register_default(self, register: str, value: int) -> None:
        """Seed a register value for disassembly context."""

    @abstractmethod
    def disassemble(self, address: int) -> Optional[Instruction]:
        """Decode the instruction at address, or None."""

    @abstractmethod
    def regions(self) -> List[Region]:
        """All regions sorted by address."""

    def region_at(self, address: int) -> Optional[Region]:
        for region in self.regions():
            if region.contains(address):
                return region
        return None


class MemoryAddressSpace(AddressSpace):
    """
    In-memory address space backed by anonymous memory maps.

    Regions never overlap; mirrors copy their base region's permissions
    when created.
    """

    def __init__(self, decoder: Optional[MipsDecoder] = None):
        self._regions: List[Region] = []
        self._decoder = decoder or MipsDecoder()

        self.labels = LabelManager()
        self.data_items: Dict[int, Tuple[int, int]] = {}   # address -> (width, count)
        self.functions: Dict[int, str] = {}
        self.entry_points: List[int] = []
        self.register_defaults: Dict[str, int] = {}
        self.instructions: Dict[int, Instruction] = {}

    # ---- regions ----

    def _check_range(self, name: str, address: int, size: int) -> None:
        if size <= 0:
            raise ValueError(f"Region {name}: size must be positive, got {size}")
        if address < 0 or address + size > ADDRESS_LIMIT:
            raise ValueError(f"Region {name}: 0x{address:X}+0x{size:X} "
                             f"is outside the 32-bit address space")
        for region in self._regions:
            if address < region.end and region.address < address + size:
                raise RegionConflictError(
                    f"Region {name} at 0x{address:08X}-0x{address + size:08X} "
                    f"overlaps {region.name} at "
                    f"0x{region.address:08X}-0x{region.end:08X}")

    def _insert(self, region: Region) -> Region:
        self._regions.append(region)
        self._regions.sort(key=lambda r: r.address)
        return region

    def create_region(self, name, address, size, read, write, execute, data=None):
        self._check_range(name, address, size)
        try:
            storage = _allocate(size)
        except (MemoryError, OverflowError, OSError) as e:
            raise RegionError(f"Region {name}: cannot allocate 0x{size:X} bytes: {e}") from e
        if data is not None:
            chunk = bytes(data[:size])
            storage[:len(chunk)] = chunk
        return self._insert(Region(
            name=name, address=address, size=size,
            read=read, write=write, execute=execute,
            storage=storage, initialized=data is not None,
        ))

    def create_mirror(self, name, base_address, address, size):
        base = self.region_at(base_address)
        if base is None:
            raise RegionError(f"Mirror {name}: no region at base "
                              f"0x{base_address:08X}")
        start = base.offset + (base_address - base.address)
        if base_address + size > base.end:
            raise RegionError(f"Mirror {name}: 0x{size:X} bytes from "
                              f"0x{base_address:08X} run past {base.name}")
        self._check_range(name, address, size)
        return self._insert(Region(
            name=name, address=address, size=size,
            read=base.read, write=base.write, execute=base.execute,
            storage=base.storage, offset=start,
            mirror_of=base_address, initialized=base.initialized,
        ))

    def regions(self):
        return list(self._regions)

    def get_region(self, name: str, address: Optional[int] = None) -> Optional[Region]:
        """Find a region by name (and start address, for repeated names)."""
        for region in self._regions:
            if region.name == name and (address is None or region.address == address):
                return region
        return None

    # ---- memory access ----

    def _locate(self, address: int, size: int) -> Tuple[Region, int]:
        region = self.region_at(address)
        if region is None:
            raise RegionError(f"Address 0x{address:08X} is not mapped")
        if address + size > region.end:
            raise RegionError(f"Access 0x{address:08X}+{size} crosses the end "
                              f"of {region.name}")
        return region, region.offset + (address - region.address)

    def read(self, address: int, size: int) -> bytes:
        region, off = self._locate(address, size)
        return bytes(region.storage[off:off + size])

    def write(self, address: int, data: bytes) -> None:
        region, off = self._locate(address, len(data))
        region.storage[off:off + len(data)] = data

    # ---- listing ----

    def create_data(self, address, width, count=1):
        if width not in (8, 16, 32):
            raise ValueError(f"Unsupported data width: {width}")
        self._locate(address, width // 8 * count)
        self.data_items[address] = (width, count)

    def create_label(self, address, name, label_type=LabelType.DATA):
        region = self.region_at(address)
        return self.labels.add(Label(
            address=address,
            name=name,
            label_type=label_type,
            section=region.name if region else "",
        ))

    def create_function(self, address, name):
        self.create_label(address, name, LabelType.FUNCTION)
        self.functions[address] = name

    def add_entry_point(self, address):
        if address not in self.entry_points:
            self.entry_points.append(address)

    def set_register_default(self, register, value):
        self.register_defaults[register] = value & 0xFFFFFFFF

    def disassemble(self, address):
        region = self.region_at(address)
        if region is None:
            return None
        avail = region.end - address
        code = self.read(address, min(avail, 4))
        insn = self._decoder.decode(code, address)
        if insn is not None:
            self.instructions[address] = insn
        return insn
