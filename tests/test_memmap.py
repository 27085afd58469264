"""
Tests for tools.psx_loader.memmap.
"""

import logging

import pytest

from tools.psx_loader.header import parse_header
from tools.psx_loader.memmap import (
    DataRequest, MirrorRequest, RegionRequest,
    build_memory_map, mirror_address, realize,
)
from tools.psx_loader.mmio import MMIO_CATALOG
from tools.psx_loader.monitor import LoadCancelled, TaskMonitor
from tools.psx_loader.space import MemoryAddressSpace, RegionConflictError


def _regions(requests):
    return [r for r in requests if isinstance(r, RegionRequest)]


def _mirrors(requests):
    return [r for r in requests if isinstance(r, MirrorRequest)]


class TestBuildMemoryMap:

    def test_ram_split_around_code(self, make_exe):
        header = parse_header(make_exe(load=0x80010000, code=bytes(0x3000)))
        regions = _regions(build_memory_map(header))

        ram = [(r.name, r.address, r.size) for r in regions[:3]]
        assert ram == [
            ("RAM_B", 0x80000000, 0x10000),
            ("CODE_B", 0x80010000, 0x3000),
            ("RAM_B", 0x80013000, 0x200000 - 0x13000),
        ]

    def test_leading_requests_in_order(self, make_exe):
        header = parse_header(make_exe(load=0x80010000, code=bytes(0x800)))
        names = [r.name for r in build_memory_map(header)[:9]]
        assert names == ["RAM_B", "RAM_A", "RAM_C",
                         "CODE_B", "CODE_A", "CODE_C",
                         "RAM_B", "RAM_A", "RAM_C"]

    def test_code_backed_by_file_after_header(self, make_exe):
        header = parse_header(make_exe())
        code = [r for r in _regions(build_memory_map(header)) if r.name == "CODE_B"][0]
        assert code.file_offset == 0x800
        assert (code.read, code.write, code.execute) == (True, False, True)

        others = [r for r in _regions(build_memory_map(header)) if r.name != "CODE_B"]
        assert all(r.file_offset is None for r in others)

    def test_every_ram_piece_mirrored(self, make_exe):
        header = parse_header(make_exe(load=0x80040000, code=bytes(0x1800)))
        requests = build_memory_map(header)
        mirrors = {(m.base_address, m.address, m.size) for m in _mirrors(requests)}

        for r in _regions(requests):
            if r.name in ("RAM_B", "CODE_B"):
                low = r.address & 0x00FFFFFF
                assert (r.address, low, r.size) in mirrors
                assert (r.address, 0xA0000000 | low, r.size) in mirrors

        assert len(mirrors) == 6

    def test_mirrors_follow_their_base(self, make_exe):
        requests = build_memory_map(parse_header(make_exe()))
        created = set()
        for req in requests:
            if isinstance(req, RegionRequest):
                created.add(req.address)
            elif isinstance(req, MirrorRequest):
                assert req.base_address in created

    def test_mirror_address(self):
        assert mirror_address(0x80010000, 0x00000000) == 0x00010000
        assert mirror_address(0x80010000, 0xA0000000) == 0xA0010000
        assert mirror_address(0x801FFFFF, 0xA0000000) == 0xA01FFFFF

    def test_code_at_ram_start_drops_empty_piece(self, make_exe, caplog):
        header = parse_header(make_exe(load=0x80000000))
        with caplog.at_level(logging.WARNING):
            requests = build_memory_map(header)
        assert requests[0].name == "CODE_B"
        assert all(r.size > 0 for r in _regions(requests) + _mirrors(requests))
        assert "not positive" in caplog.text

    def test_ram_stays_in_physical_window(self, make_exe):
        header = parse_header(make_exe(load=0x00010000, code=bytes(0x800)))
        regions = _regions(build_memory_map(header))
        ram = [(r.address, r.size) for r in regions if r.name == "RAM_B"]
        assert ram == [(0x80000000, 0x200000)]
        code = [r for r in regions if r.name == "CODE_B"][0]
        assert (code.address, code.size) == (0x00010000, 0x800)

    def test_code_above_ram_window(self, make_exe):
        header = parse_header(make_exe(load=0x90000000, code=bytes(0x800)))
        ram = [(r.address, r.size) for r in _regions(build_memory_map(header))
               if r.name == "RAM_B"]
        assert ram == [(0x80000000, 0x200000)]

    def test_data_and_bss_only_when_present(self, make_exe):
        names = [r.name for r in _regions(build_memory_map(parse_header(make_exe())))]
        assert "DATA" not in names
        assert "BSS" not in names

        header = parse_header(make_exe(data=(0x1F000000, 0x100), bss=(0x1F100000, 0x200)))
        regions = {r.name: r for r in _regions(build_memory_map(header))}
        assert (regions["DATA"].address, regions["DATA"].size) == (0x1F000000, 0x100)
        assert (regions["BSS"].address, regions["BSS"].size) == (0x1F100000, 0x200)
        assert regions["DATA"].file_offset is None

        mirrored = {m.base_address for m in _mirrors(build_memory_map(header))}
        assert 0x1F000000 not in mirrored
        assert 0x1F100000 not in mirrored

    def test_scratchpad(self, make_exe):
        regions = {r.name: r for r in _regions(build_memory_map(parse_header(make_exe())))}
        cache, unk = regions["CACHE"], regions["UNK1"]
        assert (cache.address, cache.size) == (0x1F800000, 0x400)
        assert (unk.address, unk.size) == (0x1F800400, 0xC00)
        for r in (cache, unk):
            assert (r.read, r.write, r.execute) == (True, True, False)

    def test_mmio_regions_and_labels(self, make_exe):
        requests = build_memory_map(parse_header(make_exe()))
        regions = {r.name: r for r in _regions(requests)}

        for block in MMIO_CATALOG:
            region = regions[block.name]
            assert (region.address, region.size) == (block.address, block.size)
            assert (region.read, region.write, region.execute) == (True, True, False)

        labels = [d for d in requests if isinstance(d, DataRequest) and d.name]
        voices = [d for d in labels if d.name.startswith("VOICE_")]
        assert len(voices) == 24 * 6
        assert DataRequest(0x1F801070, 16, 1, "I_STAT") in labels

    def test_build_is_idempotent(self, make_exe):
        header = parse_header(make_exe(data=(0x80100000, 0x10), bss=(0x80110000, 0x20)))
        assert build_memory_map(header) == build_memory_map(header)


class TestRealize:

    def test_standard_map_realizes_cleanly(self, make_exe, space):
        data = make_exe()
        failures = realize(build_memory_map(parse_header(data)), space, data)
        assert failures == []
        assert len(space.regions()) == 9 + 2 + len(MMIO_CATALOG)

    def test_code_bytes_copied_from_file(self, make_exe, space):
        code = bytes(range(256)) * 8
        data = make_exe(code=code)
        realize(build_memory_map(parse_header(data)), space, data)
        assert space.read(0x80010000, len(code)) == code
        assert space.read(0x00010010, 4) == code[0x10:0x14]
        assert space.read(0xA0010010, 4) == code[0x10:0x14]

    def test_mirror_permissions_copied(self, make_exe, space):
        data = make_exe()
        realize(build_memory_map(parse_header(data)), space, data)
        for name in ("CODE_A", "CODE_C"):
            assert space.get_region(name).permissions == "r-x"
        for region in space.regions():
            if region.name in ("RAM_A", "RAM_C"):
                assert region.permissions == "rwx"

    def test_truncated_file_zero_filled(self, make_exe, space, caplog):
        data = make_exe(code=b"\x11" * 0x10, code_size=0x100)
        with caplog.at_level(logging.WARNING):
            failures = realize(build_memory_map(parse_header(data)), space, data)
        assert failures == []
        assert space.read(0x80010000, 0x10) == b"\x11" * 0x10
        assert space.read(0x80010010, 0x10) == bytes(0x10)
        assert "truncated" in caplog.text

    def test_conflict_is_reported_and_skipped(self, make_exe, space, caplog):
        # data inside already-mapped RAM
        data = make_exe(data=(0x80100000, 0x100), bss=(0x1F000000, 0x100))
        with caplog.at_level(logging.ERROR):
            failures = realize(build_memory_map(parse_header(data)), space, data)

        assert [f.request.name for f in failures] == ["DATA"]
        assert "Error creating DATA" in caplog.text
        assert space.get_region("BSS") is not None
        assert space.get_region("SPU_CTRL_REGS") is not None

    def test_requests_after_failure_still_applied(self, space):
        requests = [
            RegionRequest("A", 0x1000, 0x100),
            RegionRequest("B", 0x1080, 0x100),
            MirrorRequest("M", 0x5000, 0x9000, 0x10),
            RegionRequest("C", 0x2000, 0x100),
            DataRequest(0x2000, 32, 1, "REG"),
        ]
        failures = realize(requests, space, b"")
        assert [type(f.request).__name__ for f in failures] == ["RegionRequest", "MirrorRequest"]
        assert [r.name for r in space.regions()] == ["A", "C"]
        assert space.labels.get_by_name("REG").address == 0x2000

    def test_label_failure_is_non_fatal(self, space):
        requests = [
            RegionRequest("A", 0x1000, 0x100),
            DataRequest(0x1000, 32, 1, "REG"),
            DataRequest(0x1004, 32, 1, "REG"),
            DataRequest(0x1008, 32, 1, "OTHER"),
        ]
        failures = realize(requests, space, b"")
        assert len(failures) == 1
        assert space.labels.get_by_name("OTHER") is not None

    def test_cancel_before_first_request(self, make_exe, space):
        data = make_exe()
        monitor = TaskMonitor()
        monitor.cancel()
        with pytest.raises(LoadCancelled):
            realize(build_memory_map(parse_header(data)), space, data, monitor)
        assert space.regions() == []

    def test_cancel_midway_keeps_created_regions(self, make_exe, space):

        class CancelAfter(TaskMonitor):
            def __init__(self, n):
                super().__init__()
                self.remaining = n

            def check_cancelled(self):
                if self.remaining == 0:
                    self.cancel()
                self.remaining -= 1
                super().check_cancelled()

        data = make_exe()
        with pytest.raises(LoadCancelled):
            realize(build_memory_map(parse_header(data)), space, data, CancelAfter(4))
        # RAM_B, RAM_A, RAM_C and CODE_B, listed by address
        assert [r.name for r in space.regions()] == ["RAM_A", "RAM_B", "CODE_B", "RAM_C"]

    def test_conflict_error_type(self, space):
        space.create_region("A", 0x1000, 0x10, True, True, False)
        with pytest.raises(RegionConflictError):
            space.create_region("B", 0x100F, 0x10, True, True, False)

    def test_allocation_failure_is_recorded(self, make_exe, caplog):

        class TightSpace(MemoryAddressSpace):
            def create_region(self, name, address, size, read, write, execute, data=None):
                if name == "BSS":
                    raise MemoryError()
                return super().create_region(name, address, size, read, write, execute, data)

        space = TightSpace()
        data = make_exe(bss=(0xB0000000, 0x50000000))
        with caplog.at_level(logging.ERROR):
            failures = realize(build_memory_map(parse_header(data)), space, data)

        assert [f.request.name for f in failures] == ["BSS"]
        assert "Error creating BSS" in caplog.text
        assert space.get_region("CACHE") is not None
        assert space.get_region("SPU_CTRL_REGS") is not None
