"""Shared pytest fixtures for the PS-X EXE loader tests."""

import struct

import pytest

from tools.psx_loader.space import MemoryAddressSpace

DEFAULT_MARKER = b"Sony Computer Entertainment Inc. for North America area"

# Startup code with the PsyQ main() call idiom:
#   addiu $sp, $sp, -8 ; nop ; jal 0x80010100 ; nop ; break 1
MAIN_ADDRESS = 0x80010100
STARTUP_WORDS = [0x27BDFFF8, 0x00000000, 0x0C004040, 0x00000000, 0x0000004D]


def code_from_words(words, size=0x800):
    code = b"".join(struct.pack('<I', w) for w in words)
    return code + bytes(size - len(code))


def build_exe(pc=0x80010000, gp=0x8001F000, load=0x80010000, code=None,
              code_size=None, data=(0, 0), bss=(0, 0), stack=(0x801FFF00, 0),
              marker=DEFAULT_MARKER, magic=b"PS-X EXE"):
    """Assemble a PS-X EXE image: 0x800-byte header followed by code."""
    if code is None:
        code = bytes(0x800)
    if code_size is None:
        code_size = len(code)

    header = bytearray(0x800)
    header[0:len(magic)] = magic
    struct.pack_into('<10I', header, 0x10,
                     pc, gp, load, code_size,
                     data[0], data[1], bss[0], bss[1],
                     stack[0], stack[1])
    header[0x4C:0x4C + len(marker)] = marker
    return bytes(header) + code


@pytest.fixture
def make_exe():
    return build_exe


@pytest.fixture
def startup_code():
    return code_from_words(STARTUP_WORDS)


@pytest.fixture
def space():
    return MemoryAddressSpace()
