"""
Catalog of PlayStation hardware register blocks.

Every block becomes one non-executable memory region; every register
inside it gets typed data and a label. Addresses follow the console's
I/O map (KUSEG physical addresses in the 0x1F80xxxx range).
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

BYTE = 8
WORD = 16
DWORD = 32


@dataclass(frozen=True)
class MmioRegister:
    """
    A hardware register, or a bank of identical registers.

    Banked registers (repeat_count > 1) use a ``{:02x}`` placeholder in
    their name which is filled with the element index.
    """
    name: str
    address: int
    width: int
    repeat_count: int = 1
    stride: int = 0

    @property
    def size(self) -> int:
        return self.width // 8

    def element_name(self, index: int) -> str:
        if self.repeat_count > 1:
            return self.name.format(index)
        return self.name

    def elements(self) -> Iterator[Tuple[str, int, int]]:
        """Yield (name, address, width) for every element of the bank."""
        for i in range(self.repeat_count):
            yield self.element_name(i), self.address + i * self.stride, self.width


@dataclass(frozen=True)
class MmioBlock:
    """A contiguous group of registers mapped as one region."""
    name: str
    address: int
    size: int
    registers: Tuple[MmioRegister, ...]

    @property
    def end(self) -> int:
        return self.address + self.size


def _dwords(base: int, *names: str) -> Tuple[MmioRegister, ...]:
    return tuple(MmioRegister(n, base + i * 4, DWORD) for i, n in enumerate(names))


def _dma_channel(name: str, address: int) -> MmioBlock:
    return MmioBlock(name, address, 0x0C, _dwords(
        address, f"{name}_MADR", f"{name}_BCR", f"{name}_CHCR"))


def _timer(name: str, address: int) -> MmioBlock:
    return MmioBlock(name, address, 0x10, _dwords(
        address, f"{name}_VAL", f"{name}_MODE", f"{name}_MAX"))


SPU_VOICE_COUNT = 24
SPU_VOICE_BASE = 0x1F801C00
SPU_VOICE_STRIDE = 0x10


def _voice(offset: int, field: str, width: int) -> MmioRegister:
    return MmioRegister(f"VOICE_{{:02x}}_{field}", SPU_VOICE_BASE + offset, width,
                        repeat_count=SPU_VOICE_COUNT, stride=SPU_VOICE_STRIDE)


MMIO_CATALOG: Tuple[MmioBlock, ...] = (
    MmioBlock("MCTRL1", 0x1F801000, 0x24, _dwords(
        0x1F801000,
        "EXP1_BASE_ADDR", "EXP2_BASE_ADDR", "EXP1_DELAY_SIZE",
        "EXP3_DELAY_SIZE", "BIOS_ROM", "SPU_DELAY", "CDROM_DELAY",
        "EXP2_DELAY_SIZE", "COMMON_DELAY",
    )),
    MmioBlock("MCTRL2", 0x1F801060, 0x04, _dwords(0x1F801060, "RAM_SIZE")),
    MmioBlock("IO_PORTS", 0x1F801040, 0x20, (
        MmioRegister("JOY_MCD_DATA", 0x1F801040, DWORD),
        MmioRegister("JOY_MCD_STAT", 0x1F801044, DWORD),
        MmioRegister("JOY_MCD_MODE", 0x1F801048, WORD),
        MmioRegister("JOY_MCD_CTRL", 0x1F80104A, WORD),
        MmioRegister("JOY_MCD_BAUD", 0x1F80104E, WORD),
        MmioRegister("SIO_DATA", 0x1F801050, DWORD),
        MmioRegister("SIO_STAT", 0x1F801054, DWORD),
        MmioRegister("SIO_MODE", 0x1F801058, WORD),
        MmioRegister("SIO_CTRL", 0x1F80105A, WORD),
        MmioRegister("SIO_MISC", 0x1F80105C, WORD),
        MmioRegister("SIO_BAUD", 0x1F80105E, WORD),
    )),
    MmioBlock("INT_CTRL", 0x1F801070, 0x06, (
        MmioRegister("I_STAT", 0x1F801070, WORD),
        MmioRegister("I_MASK", 0x1F801074, WORD),
    )),
    _dma_channel("DMA_MDEC_IN", 0x1F801080),
    _dma_channel("DMA_MDEC_OUT", 0x1F801090),
    _dma_channel("DMA_GPU", 0x1F8010A0),
    _dma_channel("DMA_CDROM", 0x1F8010B0),
    _dma_channel("DMA_SPU", 0x1F8010C0),
    _dma_channel("DMA_PIO", 0x1F8010D0),
    _dma_channel("DMA_OTC", 0x1F8010E0),
    MmioBlock("DMA_CTRL_INT", 0x1F8010F0, 0x08, _dwords(
        0x1F8010F0, "DMA_DPCR", "DMA_DICR")),
    _timer("TMR_DOTCLOCK", 0x1F801100),
    _timer("TMR_HRETRACE", 0x1F801110),
    _timer("TMR_SYSCLOCK", 0x1F801120),
    MmioBlock("CDROM_REGS", 0x1F801800, 0x04, tuple(
        MmioRegister(f"CDROM_REG{i}", 0x1F801800 + i, BYTE) for i in range(4))),
    MmioBlock("GPU_REGS", 0x1F801810, 0x08, _dwords(
        0x1F801810, "GPU_REG0", "GPU_REG1")),
    MmioBlock("MDEC_REGS", 0x1F801820, 0x08, _dwords(
        0x1F801820, "MDEC_REG0", "MDEC_REG1")),
    MmioBlock("SPU_VOICES", SPU_VOICE_BASE, SPU_VOICE_STRIDE * SPU_VOICE_COUNT, (
        _voice(0x00, "LEFT_RIGHT", DWORD),
        _voice(0x04, "ADPCM_SAMPLE_RATE", WORD),
        _voice(0x06, "ADPCM_START_ADDR", WORD),
        _voice(0x08, "ADSR_ATT_DEC_SUS_REL", WORD),
        _voice(0x0C, "ADSR_CURR_VOLUME", WORD),
        _voice(0x0E, "ADPCM_REPEAT_ADDR", WORD),
    )),
    MmioBlock("SPU_CTRL_REGS", 0x1F801D80, 0x40, (
        MmioRegister("SPU_MAIN_VOL_L", 0x1F801D80, WORD),
        MmioRegister("SPU_MAIN_VOL_R", 0x1F801D82, WORD),
        MmioRegister("SPU_REVERB_OUT_L", 0x1F801D84, WORD),
        MmioRegister("SPU_REVERB_OUT_R", 0x1F801D86, WORD),
        MmioRegister("SPU_VOICE_KEY_ON", 0x1F801D88, DWORD),
        MmioRegister("SPU_VOICE_KEY_OFF", 0x1F801D8C, DWORD),
        MmioRegister("SPU_VOICE_CHN_FM_MODE", 0x1F801D90, DWORD),
        MmioRegister("SPU_VOICE_CHN_NOISE_MODE", 0x1F801D94, DWORD),
        MmioRegister("SPU_VOICE_CHN_REVERB_MODE", 0x1F801D98, DWORD),
        MmioRegister("SPU_VOICE_CHN_ON_OFF_STATUS", 0x1F801D9C, DWORD),
        MmioRegister("SPU_UNKN_1DA0", 0x1F801DA0, WORD),
        MmioRegister("SOUND_RAM_REVERB_WORK_ADDR", 0x1F801DA2, WORD),
        MmioRegister("SOUND_RAM_IRQ_ADDR", 0x1F801DA4, WORD),
        MmioRegister("SOUND_RAM_DATA_TRANSFER_ADDR", 0x1F801DA6, WORD),
        MmioRegister("SOUND_RAM_DATA_TRANSFER_FIFO", 0x1F801DA8, WORD),
        MmioRegister("SPU_CTRL_REG_CPUCNT", 0x1F801DAA, WORD),
        MmioRegister("SOUND_RAM_DATA_TRANSFER_CTRL", 0x1F801DAC, WORD),
        MmioRegister("SPU_STATUS_REG_SPUSTAT", 0x1F801DAE, WORD),
        MmioRegister("CD_VOL_L", 0x1F801DB0, WORD),
        MmioRegister("CD_VOL_R", 0x1F801DB2, WORD),
        MmioRegister("EXT_VOL_L", 0x1F801DB4, WORD),
        MmioRegister("EXT_VOL_R", 0x1F801DB6, WORD),
        MmioRegister("CURR_MAIN_VOL_L", 0x1F801DB8, WORD),
        MmioRegister("CURR_MAIN_VOL_R", 0x1F801DBA, WORD),
        MmioRegister("SPU_UNKN_1DBC", 0x1F801DBC, DWORD),
    )),
)


def iter_registers(block: MmioBlock) -> List[Tuple[str, int, int]]:
    """Return every register element of a block, sorted by address."""
    elements = [e for reg in block.registers for e in reg.elements()]
    return sorted(elements, key=lambda e: e[1])


def block_layout(block: MmioBlock) -> List[Tuple[Optional[str], int, int, int]]:
    """
    Lay out a block as (name, address, width, count) entries.

    Named entries are single registers; entries with a None name are
    reserved filler bytes covering the gaps between registers and up
    to the end of the block.
    """
    layout = []
    cursor = block.address
    for name, address, width in iter_registers(block):
        if address < cursor:
            raise ValueError(f"Register {name} at 0x{address:08X} overlaps "
                             f"previous register in {block.name}")
        if address > cursor:
            layout.append((None, cursor, BYTE, address - cursor))
        layout.append((name, address, width, 1))
        cursor = address + width // 8

    if cursor > block.end:
        raise ValueError(f"Registers of {block.name} run past 0x{block.end:08X}")
    if cursor < block.end:
        layout.append((None, cursor, BYTE, block.end - cursor))
    return layout


def find_block(name: str) -> Optional[MmioBlock]:
    """Look up a catalog block by name."""
    for block in MMIO_CATALOG:
        if block.name == name:
            return block
    return None
