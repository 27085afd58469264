"""
Tests for tools.psx_loader.output.
"""

import json

from conftest import MAIN_ADDRESS
from tools.psx_loader.loader import PsxLoader
from tools.psx_loader.output import OutputWriter, format_memory_map, print_stats


def _load(make_exe, space, **kwargs):
    return PsxLoader().load(make_exe(**kwargs), space)


class TestOutputWriter:

    def test_writes_json_databases(self, make_exe, space, startup_code, tmp_path):
        result = _load(make_exe, space, code=startup_code)
        out = tmp_path / "out"
        OutputWriter(str(out), space, result, "game.exe").write_all()

        summary = json.loads((out / "summary.json").read_text())
        assert summary["binary"] == "game.exe"
        assert summary["entry_point"] == "0x80010000"
        assert summary["main"] == f"0x{MAIN_ADDRESS:08X}"
        assert summary["register_defaults"]["gp"] == "0x8001F000"
        assert summary["regions"] == len(space.regions())

        regions = json.loads((out / "memory_map.json").read_text())
        code = [r for r in regions if r["name"] == "CODE_C"][0]
        assert code["start"] == "0xA0010000"
        assert code["mirror_of"] == "0x80010000"
        assert code["permissions"] == "r-x"

        labels = json.loads((out / "labels.json").read_text())
        names = {l["name"] for l in labels}
        assert {"start", "main", "I_STAT"} <= names


class TestPrintStats:

    def test_summary_lines(self, make_exe, space, capsys):
        result = _load(make_exe, space, data=(0x80100000, 0x10))
        print_stats(space, result, "game.exe")
        out = capsys.readouterr().out

        assert "Binary: game.exe" in out
        assert "main:  not found" in out
        assert "Rejected requests:" in out
        assert "DATA" in out

    def test_memory_map_lines(self, make_exe, space):
        _load(make_exe, space)
        lines = format_memory_map(space)
        assert len(lines) == len(space.regions())
        assert lines[0].lstrip().startswith("0x00000000-0x0000FFFF  rwx  RAM_A")
        assert any("-> 0x80010000" in line for line in lines)
