"""ROM loading and the fetch/execute/render cycle around a machine."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Protocol, TextIO, Union

from chip9.machine import (
    MEM_SIZE,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    Chip8,
    State,
    state_name,
)

_FATAL_STATES = (State.NOT_IMPL, State.ERROR_STACK_FULL, State.ERROR_POP_EMPTY_STACK)


class RomLoadError(OSError):
    """A ROM file could not be read or does not fit in memory."""


class Screen(Protocol):
    def clear_screen(self) -> None: ...

    def screen_pixel(self, x: int, y: int, on: bool) -> None: ...


def load_file(path: Union[str, Path], max_len: int = MEM_SIZE) -> bytes:
    """Read a whole file, refusing one larger than ``max_len`` bytes."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise RomLoadError(f"could not open file {path}: {exc.strerror or exc}") from exc
    if len(data) > max_len:
        raise RomLoadError(f"buffer too small ({max_len} bytes), need {len(data)} bytes")
    return data


class Emulator:
    """Drives a machine one instruction at a time and reacts to its state."""

    def __init__(
        self,
        machine: Optional[Chip8] = None,
        screen: Optional[Screen] = None,
        out: Optional[TextIO] = None,
    ) -> None:
        self.machine = machine if machine is not None else Chip8()
        self.screen = screen
        self.out = out if out is not None else sys.stdout
        self.quit = False

    def _print(self, message: str) -> None:
        print(message, file=self.out)

    def start(self, path: Union[str, Path]) -> None:
        """Load a ROM from disk and reset the machine with it."""
        try:
            rom = load_file(path, MEM_SIZE)
        except RomLoadError:
            self._print(f"rom {path} load faild")
            raise
        self.machine.reset(rom)
        self.quit = False
        self._print(f"rom {path} load done. len: {len(rom)}")

    def update(self) -> bool:
        """Run one cycle; return False once the emulator has stopped."""
        if self.quit:
            return False

        machine = self.machine
        old_pc = machine.pc
        machine.fetch()
        machine.execute()
        machine.update_timer()

        state = machine.state
        if state is State.VRAM_UPDATE:
            self.render()
            machine.state = State.RUNNING
        elif state is State.INFINITE_LOOP:
            self._print("INFINITE LOOP")
            self.quit = True
        elif state in _FATAL_STATES:
            self._print(f"ERROR: {state_name(state)}, PC={old_pc:04X},IR={machine.ir:04X}")
            self.quit = True
        return not self.quit

    def render(self) -> None:
        """Push every pixel of video memory to the screen."""
        if self.screen is None:
            return
        self.screen.clear_screen()
        for y in range(SCREEN_HEIGHT):
            for x in range(SCREEN_WIDTH):
                self.screen.screen_pixel(x, y, self.machine.read_vram(x, y))