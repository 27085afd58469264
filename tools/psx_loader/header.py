"""
PS-X EXE header parser.

Decodes the fixed 0x800-byte executable header into an immutable
descriptor. The magic tag is the only validation performed: every
other field is taken as-is and interpreted downstream (a zero data or
bss address means the section is absent).
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PsxExeHeader:
    """Load parameters from a PS-X EXE header."""
    magic: bytes
    initial_pc: int
    initial_gp: int
    load_address: int      # where the code section is placed
    code_size: int
    data_address: int      # 0 = absent
    data_size: int
    bss_address: int       # 0 = absent
    bss_size: int
    stack_base: int
    stack_offset: int
    marker: str = ""

    @property
    def is_valid(self) -> bool:
        return self.magic == config.PSX_EXE_MAGIC

    @property
    def header_size(self) -> int:
        return config.HEADER_SIZE

    @property
    def stack_pointer(self) -> int:
        """Initial $sp: stack base plus stack offset."""
        return (self.stack_base + self.stack_offset) & 0xFFFFFFFF

    @property
    def code_end(self) -> int:
        return self.load_address + self.code_size

    @property
    def has_data(self) -> bool:
        return self.data_address != 0

    @property
    def has_bss(self) -> bool:
        return self.bss_address != 0

    def to_dict(self) -> dict:
        return {
            "initial_pc": f"0x{self.initial_pc:08X}",
            "initial_gp": f"0x{self.initial_gp:08X}",
            "load_address": f"0x{self.load_address:08X}",
            "code_size": self.code_size,
            "data_address": f"0x{self.data_address:08X}",
            "data_size": self.data_size,
            "bss_address": f"0x{self.bss_address:08X}",
            "bss_size": self.bss_size,
            "stack_base": f"0x{self.stack_base:08X}",
            "stack_offset": self.stack_offset,
            "marker": self.marker,
        }


def _read_u32(data: bytes, offset: int) -> int:
    return struct.unpack_from('<I', data, offset)[0]


def _read_marker(data: bytes) -> str:
    """Read the NUL-terminated ASCII marker text inside the header."""
    end = data.find(b'\x00', config.OFF_MARKER, config.HEADER_SIZE)
    if end == -1:
        end = min(len(data), config.HEADER_SIZE)
    return data[config.OFF_MARKER:end].decode('ascii', errors='replace')


def parse_header(data: bytes) -> Optional[PsxExeHeader]:
    """
    Parse a PS-X EXE header.

    Args:
        data: The raw file contents (at least the fixed field area).

    Returns:
        The header descriptor, or None when the magic does not match
        or the input is too short to hold the header fields.
    """
    magic = bytes(data[:len(config.PSX_EXE_MAGIC)])
    if magic != config.PSX_EXE_MAGIC:
        logger.debug("Not a PS-X EXE: magic %r", magic)
        return None

    if len(data) < config.HEADER_FIELDS_END:
        logger.debug("Truncated PS-X EXE header: %d bytes", len(data))
        return None

    return PsxExeHeader(
        magic=magic,
        initial_pc=_read_u32(data, config.OFF_INITIAL_PC),
        initial_gp=_read_u32(data, config.OFF_INITIAL_GP),
        load_address=_read_u32(data, config.OFF_LOAD_ADDRESS),
        code_size=_read_u32(data, config.OFF_CODE_SIZE),
        data_address=_read_u32(data, config.OFF_DATA_ADDRESS),
        data_size=_read_u32(data, config.OFF_DATA_SIZE),
        bss_address=_read_u32(data, config.OFF_BSS_ADDRESS),
        bss_size=_read_u32(data, config.OFF_BSS_SIZE),
        stack_base=_read_u32(data, config.OFF_STACK_BASE),
        stack_offset=_read_u32(data, config.OFF_STACK_OFFSET),
        marker=_read_marker(data),
    )


def read_header(path: str) -> Optional[PsxExeHeader]:
    """Read a file and parse its PS-X EXE header."""
    exe_file = Path(path)
    if not exe_file.exists():
        raise FileNotFoundError(f"PS-X EXE file not found: {path}")
    with open(exe_file, 'rb') as f:
        return parse_header(f.read(config.HEADER_SIZE))
