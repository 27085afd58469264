"""
Single-instruction MIPS decoder using Capstone.

Decodes R3000A (MIPS I, little-endian) instructions one at a time and
resolves the address each control-flow operand refers to.
"""

import struct
from dataclasses import dataclass, field
from typing import Dict, Optional

from capstone import Cs, CsError, CsInsn
from capstone import CS_ARCH_MIPS, CS_MODE_MIPS32, CS_MODE_LITTLE_ENDIAN
from capstone.mips import MIPS_OP_IMM

from . import config


@dataclass
class Instruction:
    """A decoded instruction with resolved operand references."""
    address: int
    size: int
    mnemonic: str
    op_str: str
    bytes_hex: str

    # operand index -> referenced address
    operand_refs: Dict[int, int] = field(default_factory=dict)

    @property
    def is_jump(self) -> bool:
        return self.mnemonic in config.JUMP_MNEMONICS

    @property
    def is_branch(self) -> bool:
        return self.mnemonic in config.BRANCH_MNEMONICS

    def get_reference(self, operand: int = 0) -> Optional[int]:
        """Referenced address of an operand, or None."""
        return self.operand_refs.get(operand)

    def to_dict(self) -> dict:
        d = {
            "address": f"0x{self.address:08X}",
            "size": self.size,
            "mnemonic": self.mnemonic,
            "op_str": self.op_str,
            "bytes": self.bytes_hex,
        }
        if self.operand_refs:
            d["refs"] = {str(i): f"0x{a:08X}" for i, a in sorted(self.operand_refs.items())}
        return d


def jump_target(word: int, address: int) -> int:
    """Target of a J/JAL: the 26-bit index within the current 256 MiB segment."""
    return ((address + 4) & 0xF0000000) | ((word & 0x03FFFFFF) << 2)


def branch_target(word: int, address: int) -> int:
    """Target of a PC-relative branch (16-bit signed word offset from the delay slot)."""
    offset = word & 0xFFFF
    if offset & 0x8000:
        offset -= 0x10000
    return (address + 4 + (offset << 2)) & 0xFFFFFFFF


class MipsDecoder:
    """
    Capstone MIPS32 little-endian decoder.

    Only decodes; it keeps no state between instructions.
    """

    def __init__(self):
        self._cs = Cs(CS_ARCH_MIPS, CS_MODE_MIPS32 + CS_MODE_LITTLE_ENDIAN)
        self._cs.detail = True

    def _resolve_refs(self, cs_insn: CsInsn, word: int) -> Dict[int, int]:
        """Map operand indices to the addresses they reference."""
        mnemonic = cs_insn.mnemonic
        opcode = word >> 26

        if mnemonic in config.JUMP_MNEMONICS and opcode in (config.OPCODE_J, config.OPCODE_JAL):
            return {0: jump_target(word, cs_insn.address)}

        if mnemonic in config.BRANCH_MNEMONICS:
            try:
                operands = cs_insn.operands
            except CsError:
                operands = []
            for i, op in enumerate(operands):
                if op.type == MIPS_OP_IMM:
                    return {i: branch_target(word, cs_insn.address)}

        return {}

    def decode(self, code: bytes, address: int) -> Optional[Instruction]:
        """
        Decode one instruction.

        Args:
            code: Bytes at the instruction address (at least 4).
            address: Virtual address of the first byte.

        Returns:
            The decoded instruction, or None if the bytes are not a valid
            instruction.
        """
        if len(code) < config.INSN_SIZE:
            return None
        code = bytes(code[:config.INSN_SIZE])

        cs_insn = next(self._cs.disasm(code, address, 1), None)
        if cs_insn is None:
            return None

        word = struct.unpack_from('<I', code)[0]
        return Instruction(
            address=cs_insn.address,
            size=cs_insn.size,
            mnemonic=cs_insn.mnemonic,
            op_str=cs_insn.op_str,
            bytes_hex=cs_insn.bytes.hex(),
            operand_refs=self._resolve_refs(cs_insn, word),
        )
