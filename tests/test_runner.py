import io

import pytest

from chip9.machine import MEM_SIZE, SCREEN_HEIGHT, SCREEN_WIDTH, Chip8, State
from chip9.runner import Emulator, RomLoadError, load_file


class RecordingScreen:
    def __init__(self):
        self.clears = 0
        self.pixels = {}

    def clear_screen(self):
        self.clears += 1

    def screen_pixel(self, x, y, on):
        self.pixels[(x, y)] = on


def write_rom(tmp_path, data, name="test.ch8"):
    path = tmp_path / name
    path.write_bytes(bytes(data))
    return path


def make_emulator():
    screen = RecordingScreen()
    out = io.StringIO()
    return Emulator(Chip8(), screen, out), screen, out


def test_load_file_returns_contents(tmp_path):
    path = write_rom(tmp_path, [0x12, 0x00, 0xAB])
    assert load_file(path, MEM_SIZE) == bytes([0x12, 0x00, 0xAB])


def test_load_file_too_large(tmp_path):
    path = write_rom(tmp_path, [0] * 10)
    with pytest.raises(RomLoadError):
        load_file(path, 9)


def test_load_file_missing(tmp_path):
    with pytest.raises(RomLoadError):
        load_file(tmp_path / "missing.ch8", MEM_SIZE)


def test_start_loads_rom(tmp_path):
    emu, _, out = make_emulator()
    path = write_rom(tmp_path, [0x60, 0x2A, 0x12, 0x02])
    emu.start(path)
    assert emu.machine.ram[0x200:0x204] == bytes([0x60, 0x2A, 0x12, 0x02])
    assert out.getvalue() == f"rom {path} load done. len: 4\n"


def test_start_missing_file_raises(tmp_path):
    emu, _, out = make_emulator()
    path = tmp_path / "nope.ch8"
    with pytest.raises(RomLoadError):
        emu.start(path)
    assert "load faild" in out.getvalue()


def test_clear_renders_and_infinite_loop_stops(tmp_path):
    emu, screen, out = make_emulator()
    emu.start(write_rom(tmp_path, [0x00, 0xE0, 0x12, 0x02]))

    assert emu.update() is True
    assert screen.clears == 1
    assert len(screen.pixels) == SCREEN_WIDTH * SCREEN_HEIGHT
    assert not any(screen.pixels.values())
    assert emu.machine.state is State.RUNNING

    assert emu.update() is False
    assert emu.quit
    assert out.getvalue().endswith("INFINITE LOOP\n")

    pc = emu.machine.pc
    assert emu.update() is False
    assert emu.machine.pc == pc


def test_error_state_reports_and_quits(tmp_path):
    emu, _, out = make_emulator()
    emu.start(write_rom(tmp_path, [0x00, 0xEE]))
    assert emu.update() is False
    assert out.getvalue().splitlines()[-1] == (
        "ERROR: STATE_ERROR_POP_EMPTY_STACK, PC=0200,IR=00EE"
    )


def test_draw_font_glyph_reaches_screen(tmp_path):
    emu, screen, _ = make_emulator()
    # I = 0x050 (glyph "0"), then draw it at V0, V0 with height 5.
    emu.start(write_rom(tmp_path, [0xA0, 0x50, 0xD0, 0x05]))
    emu.update()
    emu.update()
    assert screen.clears == 1
    assert [screen.pixels[(x, 0)] for x in range(5)] == [True, True, True, True, False]
    assert screen.pixels[(0, 1)] is True
    assert screen.pixels[(1, 1)] is False
    assert emu.machine.v[0xF] == 0


def test_render_without_screen_is_harmless(tmp_path):
    emu = Emulator(Chip8(), None, io.StringIO())
    emu.start(write_rom(tmp_path, [0x00, 0xE0]))
    assert emu.update() is True
    assert emu.machine.state is State.RUNNING