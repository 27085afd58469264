"""
Memory map construction for PS-X EXE images.

build_memory_map() turns a parsed header into an ordered list of
requests: the three KSEG0 RAM pieces around the code (each mirrored
into KUSEG and KSEG1), data and bss, the scratchpad, and the hardware
register blocks. realize() applies the requests to an AddressSpace,
reporting and skipping any request the host rejects.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from . import config
from .header import PsxExeHeader
from .labels import LabelType
from .mmio import MMIO_CATALOG, MmioBlock, block_layout
from .monitor import TaskMonitor
from .space import AddressSpace, RegionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionRequest:
    """A region to create; file_offset None means zero-filled."""
    name: str
    address: int
    size: int
    read: bool = True
    write: bool = True
    execute: bool = False
    file_offset: Optional[int] = None


@dataclass(frozen=True)
class MirrorRequest:
    """An alias of base_address at address; permissions come from the base."""
    name: str
    base_address: int
    address: int
    size: int


@dataclass(frozen=True)
class DataRequest:
    """Typed data at an address, labelled when name is set."""
    address: int
    width: int
    count: int = 1
    name: Optional[str] = None


Request = Union[RegionRequest, MirrorRequest, DataRequest]


@dataclass
class LoadFailure:
    """A request the address space rejected."""
    request: Request
    error: str

    def to_dict(self) -> dict:
        req = self.request
        name = getattr(req, "name", None) or ""
        return {
            "kind": type(req).__name__,
            "name": name,
            "address": f"0x{req.address:08X}",
            "error": self.error,
        }


def mirror_address(address: int, mirror_base: int) -> int:
    """Translate a KSEG0 address into another RAM window."""
    return mirror_base + (address & config.RAM_ADDR_MASK)


def _ram_piece(name: str, address: int, size: int, read: bool, write: bool,
               execute: bool, file_offset: Optional[int] = None) -> List[Request]:
    """A KSEG0 piece of RAM followed by its KUSEG and KSEG1 mirrors."""
    if size <= 0:
        logger.warning("Skipping %s at 0x%08X: size %d is not positive",
                       name, address, size)
        return []

    prefix = name.rsplit("_", 1)[0]
    requests: List[Request] = [RegionRequest(
        name=name, address=address, size=size,
        read=read, write=write, execute=execute,
        file_offset=file_offset,
    )]
    for suffix, base in config.RAM_MIRRORS:
        requests.append(MirrorRequest(
            name=f"{prefix}_{suffix}",
            base_address=address,
            address=mirror_address(address, base),
            size=size,
        ))
    return requests


def _mmio_requests(block: MmioBlock) -> List[Request]:
    requests: List[Request] = [RegionRequest(
        name=block.name, address=block.address, size=block.size,
        read=True, write=True, execute=False,
    )]
    for name, address, width, count in block_layout(block):
        requests.append(DataRequest(address=address, width=width,
                                    count=count, name=name))
    return requests


def build_memory_map(header: PsxExeHeader) -> List[Request]:
    """
    Build the ordered list of region, mirror and data requests.

    The result depends only on the header, so building twice gives
    equal lists.
    """
    requests: List[Request] = []

    ram_start = config.RAM_BASE_KSEG0
    ram_end = config.RAM_BASE_KSEG0 + config.RAM_SIZE
    code_start = header.load_address
    code_end = header.code_end

    # RAM below the code, the code itself, RAM above the code. The RAM
    # pieces stay inside the physical RAM window even when the code
    # is loaded somewhere else.
    below_end = min(code_start, ram_end)
    above_start = max(code_end, ram_start)
    requests += _ram_piece("RAM_B", ram_start, below_end - ram_start,
                           True, True, True)
    requests += _ram_piece("CODE_B", code_start, header.code_size,
                           True, False, True, file_offset=config.HEADER_SIZE)
    requests += _ram_piece("RAM_B", above_start, ram_end - above_start,
                           True, True, True)

    if header.has_data:
        requests.append(RegionRequest("DATA", header.data_address, header.data_size,
                                      True, True, True))
    if header.has_bss:
        requests.append(RegionRequest("BSS", header.bss_address, header.bss_size,
                                      True, True, True))

    requests.append(RegionRequest("CACHE", config.SCRATCHPAD_ADDR,
                                  config.SCRATCHPAD_SIZE, True, True, False))
    requests.append(RegionRequest("UNK1", config.SCRATCHPAD_UNK_ADDR,
                                  config.SCRATCHPAD_UNK_SIZE, True, True, False))

    for block in MMIO_CATALOG:
        requests += _mmio_requests(block)

    return requests


def _file_bytes(req: RegionRequest, file_data: bytes) -> bytes:
    chunk = bytes(file_data[req.file_offset:req.file_offset + req.size])
    if len(chunk) < req.size:
        logger.warning("%s: file holds 0x%X of 0x%X bytes at offset 0x%X, "
                       "zero-filling the rest (truncated file?)",
                       req.name, len(chunk), req.size, req.file_offset)
    return chunk


def _apply(req: Request, space: AddressSpace, file_data: bytes) -> None:
    if isinstance(req, RegionRequest):
        data = None
        if req.file_offset is not None:
            data = _file_bytes(req, file_data)
        space.create_region(req.name, req.address, req.size,
                            req.read, req.write, req.execute, data)
    elif isinstance(req, MirrorRequest):
        space.create_mirror(req.name, req.base_address, req.address, req.size)
    else:
        space.create_data(req.address, req.width, req.count)


def realize(requests: List[Request], space: AddressSpace, file_data: bytes,
            monitor: Optional[TaskMonitor] = None) -> List[LoadFailure]:
    """
    Apply requests to an address space in order.

    A rejected request is logged and recorded, and the remaining ones
    are still applied. Cancellation is checked before every request;
    regions created before it stay in place.

    Returns:
        The failures, in request order.
    """
    failures: List[LoadFailure] = []

    for req in requests:
        if monitor is not None:
            monitor.check_cancelled()

        try:
            _apply(req, space, file_data)
        except (RegionError, ValueError, MemoryError) as e:
            what = getattr(req, "name", None) or f"data at 0x{req.address:08X}"
            logger.error("Error creating %s: %s", what, e)
            failures.append(LoadFailure(req, str(e)))

        if isinstance(req, DataRequest) and req.name:
            try:
                space.create_label(req.address, req.name, LabelType.REGISTER)
            except ValueError as e:
                logger.error("Error creating label %s: %s", req.name, e)
                failures.append(LoadFailure(req, str(e)))

    return failures
