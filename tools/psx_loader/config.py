"""
Configuration constants for the PS-X EXE loader.

Defines the executable header layout, the console's RAM windows,
the scratchpad area, entry-point signatures, MIPS instruction
classification, and output settings.
"""

# ============================================================
# PS-X EXE Header Layout
# ============================================================

PSX_EXE_MAGIC = b"PS-X EXE"
HEADER_SIZE = 0x800

# Field offsets (all little-endian u32)
OFF_INITIAL_PC = 0x10
OFF_INITIAL_GP = 0x14
OFF_LOAD_ADDRESS = 0x18
OFF_CODE_SIZE = 0x1C
OFF_DATA_ADDRESS = 0x20
OFF_DATA_SIZE = 0x24
OFF_BSS_ADDRESS = 0x28
OFF_BSS_SIZE = 0x2C
OFF_STACK_BASE = 0x30
OFF_STACK_OFFSET = 0x34

# End of the fixed field area
HEADER_FIELDS_END = 0x38

# ASCII marker text ("Sony Computer Entertainment Inc. for ...")
OFF_MARKER = 0x4C

# ============================================================
# Memory Layout
# ============================================================

RAM_SIZE = 0x200000            # 2 MiB physical RAM

RAM_BASE_KUSEG = 0x00000000    # low mirror
RAM_BASE_KSEG0 = 0x80000000    # cached window
RAM_BASE_KSEG1 = 0xA0000000    # uncached mirror

RAM_ADDR_MASK = 0x00FFFFFF

# Mirror windows derived from every KSEG0 RAM piece (name suffix, base)
RAM_MIRRORS = [
    ("A", RAM_BASE_KUSEG),
    ("C", RAM_BASE_KSEG1),
]

# Scratchpad ("fast on-chip data") and the unknown area behind it
SCRATCHPAD_ADDR = 0x1F800000
SCRATCHPAD_SIZE = 0x400
SCRATCHPAD_UNK_ADDR = 0x1F800400
SCRATCHPAD_UNK_SIZE = 0xC00

# ============================================================
# Entry Point Detection
# ============================================================

# PsyQ startup code: nop; jal main; nop; break 1
# (name, pattern, mask, bytes to skip before the call)
ENTRY_SIGNATURES = [
    (
        "psyq_main_call",
        bytes([0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
               0x00, 0x00, 0x00, 0x00, 0x4D, 0x00, 0x00, 0x00]),
        bytes([0xFF, 0xFF, 0xFF, 0xFF, 0x00, 0x00, 0x00, 0x00,
               0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF]),
        4,
    ),
]

# Regions are scanned in windows of this many bytes
SCAN_CHUNK_SIZE = 0x10000

ENTRY_LABEL = "start"
MAIN_LABEL = "main"

# Registers seeded as default disassembly context
REG_GP = "gp"
REG_SP = "sp"

# ============================================================
# Instruction Classification
# ============================================================

# Capstone mode: MIPS32, little-endian
INSN_SIZE = 4

# J-type opcodes (bits 31..26)
OPCODE_J = 0x02
OPCODE_JAL = 0x03

JUMP_MNEMONICS = {"j", "jal"}
BRANCH_MNEMONICS = {
    "b", "bal", "beq", "bne", "blez", "bgtz", "bltz", "bgez",
    "bltzal", "bgezal", "beqz", "bnez",
}

# ============================================================
# Loader Identity
# ============================================================

LOADER_NAME = "PSX executables loader"
LANGUAGE_ID = "MIPS:LE:32:default"
COMPILER_ID = "default"

# ============================================================
# Output Settings
# ============================================================

DEFAULT_OUTPUT_DIR = "psx_loader_output"

MEMORY_MAP_FILENAME = "memory_map.json"
LABELS_FILENAME = "labels.json"
SUMMARY_FILENAME = "summary.json"
