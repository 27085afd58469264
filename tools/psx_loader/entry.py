"""
Entry point setup and main() detection.

apply_entry_point() declares the header's initial PC as the program
entry and seeds $gp/$sp. locate_main() looks for the startup-code idiom
that calls main() and labels the call target. The idiom is specific to
one toolchain's startup code, so a miss is expected for other
executables and is never an error.
"""

import logging
from typing import List, Optional

from . import config
from .header import PsxExeHeader
from .labels import LabelError, LabelType
from .monitor import TaskMonitor
from .signatures import MaskedPattern, entry_signatures, find_masked
from .space import AddressSpace, Region

logger = logging.getLogger(__name__)


def apply_entry_point(space: AddressSpace, header: PsxExeHeader) -> None:
    """Create the entry function/label at the initial PC and seed registers."""
    pc = header.initial_pc
    try:
        # label first: create_function keeps an existing label's type
        space.create_label(pc, config.ENTRY_LABEL, LabelType.ENTRY_POINT)
        space.create_function(pc, config.ENTRY_LABEL)
        space.add_entry_point(pc)
    except LabelError as e:
        logger.error("Error setting entry point at 0x%08X: %s", pc, e)

    space.set_register_default(config.REG_GP, header.initial_gp)
    space.set_register_default(config.REG_SP, header.stack_pointer)


def _scan_regions(space: AddressSpace, start: int) -> List[Region]:
    """The region holding start, then every non-mirror region above it."""
    return [r for r in space.regions()
            if r.contains(start) or (r.address > start and not r.is_mirror)]


def find_signature(space: AddressSpace, start: int, signature: MaskedPattern,
                   monitor: Optional[TaskMonitor] = None) -> Optional[int]:
    """
    Scan forward from start for a signature.

    Matches are searched region by region in ascending address order;
    a match never spans two regions. Mirrors above start are skipped,
    their bytes belong to a region that is scanned in its own right.
    Each region is read in bounded windows, and the monitor is checked
    before each one.

    Returns:
        Address of the first match, or None.
    """
    if space.region_at(start) is None:
        return None

    chunk = config.SCAN_CHUNK_SIZE
    overlap = len(signature) - 1
    for region in _scan_regions(space, start):
        view = region.view
        for offset in range(max(start - region.address, 0), region.size, chunk):
            if monitor is not None:
                monitor.check_cancelled()
            window = view[offset:offset + chunk + overlap]
            hit = find_masked(window, signature.pattern, signature.mask)
            if hit != -1:
                return region.address + offset + hit
    return None


def locate_main(space: AddressSpace, header: PsxExeHeader,
                monitor: Optional[TaskMonitor] = None,
                signatures: Optional[List[MaskedPattern]] = None) -> Optional[int]:
    """
    Find main() from the startup code and label it.

    Returns:
        The address labelled "main", or None if it could not be found.
    """
    if signatures is None:
        signatures = entry_signatures()

    pc = header.initial_pc
    for signature in signatures:
        match = find_signature(space, pc, signature, monitor)
        if match is None:
            logger.info("Signature %s not found after 0x%08X", signature.name, pc)
            continue

        call_addr = match + signature.skip
        insn = space.disassemble(call_addr)
        if insn is None:
            logger.warning("Cannot disassemble call to main at 0x%08X", call_addr)
            continue

        target = insn.get_reference(0)
        if target is None:
            logger.warning("Instruction at 0x%08X (%s %s) has no operand reference",
                           call_addr, insn.mnemonic, insn.op_str)
            continue

        try:
            space.create_label(target, config.MAIN_LABEL, LabelType.FUNCTION)
        except LabelError as e:
            logger.error("Error setting main() at 0x%08X: %s", target, e)
            return None

        logger.info("main() at 0x%08X (called from 0x%08X)", target, call_addr)
        return target

    return None
