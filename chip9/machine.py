"""CHIP-8 virtual machine: memory, registers, timers, keypad and display."""

from __future__ import annotations

import enum
import random
import time
from typing import Callable, Optional, Sequence

MEM_SIZE = 0xFFF
PROG_MEM_OFFSET = 0x200

SCREEN_WIDTH = 64
SCREEN_HEIGHT = 32
VRAM_SIZE = SCREEN_WIDTH * SCREEN_HEIGHT // 8

STACK_DEPTH = 16
REGISTER_COUNT = 16
KEY_COUNT = 16

SPRITE_WIDTH = 8
TIMER_INTERVAL_MS = 1000 // 60

DEFAULT_FONT_OFFSET = 0x050
DEFAULT_FONT = bytes(
    [
        0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
        0x20, 0x60, 0x20, 0x20, 0x70,  # 1
        0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
        0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
        0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
        0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
        0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
        0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
        0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
        0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
        0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
        0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
        0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
        0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
        0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
        0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
    ]
)


class State(enum.Enum):
    """Execution state reported by the machine after each step."""

    RUNNING = enum.auto()
    VRAM_UPDATE = enum.auto()
    WAIT_KEY = enum.auto()
    WAIT_KEY_UP = enum.auto()
    INFINITE_LOOP = enum.auto()
    NOT_IMPL = enum.auto()
    ERROR_STACK_FULL = enum.auto()
    ERROR_POP_EMPTY_STACK = enum.auto()


_STATE_NAMES = {
    State.RUNNING: "STATE_RUNNING",
    State.VRAM_UPDATE: "STATE_VRAM_UPDATE",
    State.WAIT_KEY: "STATE_WAIT_KEY",
    State.INFINITE_LOOP: "STATE_INFINITE_LOOP",
    State.NOT_IMPL: "STATE_NOT_IMPL",
    State.ERROR_STACK_FULL: "STATE_ERROR_STAKE_FULL",
    State.ERROR_POP_EMPTY_STACK: "STATE_ERROR_POP_EMPTY_STACK",
}


def state_name(state: State) -> str:
    """Return the display name of an execution state."""
    return _STATE_NAMES.get(state, "UNKNOWN_STATE")


class KeyState(enum.Enum):
    """State of one key on the hexadecimal keypad."""

    NONE = 0
    PRESSED = 1
    RELEASE = 2


class Keypad:
    """The sixteen-key hexadecimal keypad."""

    def __init__(self) -> None:
        self._keys = [KeyState.NONE] * KEY_COUNT

    def get(self, key: int) -> KeyState:
        """State of a key; unknown keys read as NONE."""
        if not 0 <= key < KEY_COUNT:
            return KeyState.NONE
        return self._keys[key]

    def set(self, key: int, state: KeyState) -> None:
        if not 0 <= key < KEY_COUNT:
            raise ValueError(f"invalid key id: {key}")
        self._keys[key] = state

    def find(self, state: KeyState) -> Optional[int]:
        """Lowest key id currently in the given state, or None."""
        return next((key for key, st in enumerate(self._keys) if st is state), None)

    def clear_released(self) -> None:
        """Turn every released key back to NONE."""
        self._keys = [KeyState.NONE if st is KeyState.RELEASE else st for st in self._keys]


def read_bit(data: Sequence[int], bit_index: int) -> bool:
    """Read a bit from a byte array, most significant bit first."""
    index, bit = divmod(bit_index, 8)
    if not 0 <= index < len(data):
        raise IndexError("bit index out of range")
    return bool((data[index] >> (7 - bit)) & 1)


def xor_bit(data: bytearray, bit_index: int, value: bool) -> bool:
    """XOR a bit in place; return True when a set bit was turned off."""
    index, bit = divmod(bit_index, 8)
    if not 0 <= index < len(data):
        raise IndexError("bit index out of range")
    mask = (1 << (7 - bit)) if value else 0
    old = bool(data[index] & mask)
    data[index] ^= mask
    return old and bool(value)


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class Chip8:
    """A CHIP-8 interpreter with its memory, registers and timers."""

    def __init__(
        self,
        keypad: Optional[Keypad] = None,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.keypad = keypad if keypad is not None else Keypad()
        self._clock = clock if clock is not None else _monotonic_ms
        self._rng = rng if rng is not None else random.Random()
        self.ram = bytearray(MEM_SIZE)
        self.vram = bytearray(VRAM_SIZE)
        self.v = bytearray(REGISTER_COUNT)
        self.stack = [0] * STACK_DEPTH
        self.sp = 0
        self.index = 0
        self.ir = 0
        self.pc = PROG_MEM_OFFSET
        self.delay_timer = 0
        self.sound_timer = 0
        self.font_offset = 0
        self.state = State.RUNNING
        self.cached_reg = 0
        self._st_started: Optional[int] = None
        self._dt_started: Optional[int] = None
        self._ops = (
            self._op_system,
            self._op_jump,
            self._op_call,
            self._op_skip_eq_imm,
            self._op_skip_ne_imm,
            self._op_skip_eq_reg,
            self._op_load_imm,
            self._op_add_imm,
            self._op_alu,
            self._op_skip_ne_reg,
            self._op_load_index,
            self._op_jump_offset,
            self._op_random,
            self._op_draw,
            self._op_keys,
            self._op_misc,
        )

    # -- setup -----------------------------------------------------------

    def reset(self, rom: bytes, font: Optional[bytes] = None, font_offset: int = 0) -> None:
        """Clear the machine, load a program and a font."""
        if not rom or len(rom) > MEM_SIZE - PROG_MEM_OFFSET:
            raise ValueError("rom data invalid")
        if font is None:
            font = DEFAULT_FONT
            font_offset = DEFAULT_FONT_OFFSET
        if not font or not 0 <= font_offset < MEM_SIZE or font_offset + len(font) > MEM_SIZE:
            raise ValueError("font data invalid")

        self.ir = 0
        self.index = 0
        self.pc = PROG_MEM_OFFSET
        self.sp = 0
        self.stack = [0] * STACK_DEPTH
        self.sound_timer = 0
        self.delay_timer = 0
        self.state = State.RUNNING
        self.cached_reg = 0
        self.v = bytearray(REGISTER_COUNT)
        self.vram = bytearray(VRAM_SIZE)
        self.ram = bytearray(MEM_SIZE)
        self.ram[PROG_MEM_OFFSET:PROG_MEM_OFFSET + len(rom)] = rom
        self.font_offset = font_offset
        self.ram[font_offset:font_offset + len(font)] = font

    # -- cycle -----------------------------------------------------------

    def fetch(self) -> None:
        """Load the next instruction into IR when running."""
        if self.state is not State.RUNNING:
            return
        high = self.ram[self.pc]
        low = self.ram[self.pc + 1]
        self.pc = (self.pc + 2) & 0xFFFF
        self.ir = (high << 8) | low

    def execute(self) -> None:
        """Execute the fetched instruction, updating ``state``."""
        if self.state is State.WAIT_KEY:
            key = self.keypad.find(KeyState.RELEASE)
            if key is not None:
                self.v[self.cached_reg] = key
                self.state = State.RUNNING
            return
        if self.state is not State.RUNNING:
            return
        self._ops[self.ir >> 12](self.ir)

    def update_timer(self) -> None:
        """Count the delay and sound timers down at 60 Hz."""
        if self.sound_timer:
            now = self._clock()
            if self._st_started is None:
                self._st_started = now
            elif now - self._st_started >= TIMER_INTERVAL_MS:
                self.sound_timer -= 1
                self._st_started += TIMER_INTERVAL_MS
        else:
            self._st_started = None

        if self.delay_timer:
            now = self._clock()
            if self._dt_started is None:
                self._dt_started = now
            elif now - self._dt_started >= TIMER_INTERVAL_MS:
                self.delay_timer -= 1
                self._dt_started += TIMER_INTERVAL_MS
        else:
            self._dt_started = None

    # -- peripherals -----------------------------------------------------

    def read_vram(self, x: int, y: int) -> bool:
        return read_bit(self.vram, y * SCREEN_WIDTH + x)

    def set_key_state(self, key_id: int, pressed: bool) -> None:
        self.keypad.set(key_id, KeyState.PRESSED if pressed else KeyState.RELEASE)

    def draw(self, x: int, y: int, sprite: Sequence[int], height: int) -> None:
        """XOR a sprite onto the screen, clipping at the edges; VF marks a collision."""
        x %= SCREEN_WIDTH
        y %= SCREEN_HEIGHT
        collided = False
        for row in range(height):
            cy = y + row
            if cy >= SCREEN_HEIGHT:
                break
            for col in range(SPRITE_WIDTH):
                cx = x + col
                if cx >= SCREEN_WIDTH:
                    break
                bit = read_bit(sprite, row * SPRITE_WIDTH + col)
                collided |= xor_bit(self.vram, cy * SCREEN_WIDTH + cx, bit)
        self.v[0xF] = int(collided)

    def state_str(self) -> str:
        return f"st:{self.sound_timer:3d},dt:{self.delay_timer:3d},state:{state_name(self.state)}"

    def debug_info(self) -> str:
        regs = "".join(f"{i:X}:0x{value:02X}," for i, value in enumerate(self.v))
        return (
            f"PC=0x{self.pc:04X},IR=0x{self.ir:04X},I=0x{self.index:04X} reg={{{regs}}} "
            f"state={state_name(self.state)},st={self.sound_timer},dt={self.delay_timer}"
        )

    # -- instructions ----------------------------------------------------

    def _op_system(self, ir: int) -> None:
        if ir == 0x00E0:
            self.vram = bytearray(VRAM_SIZE)
            self.state = State.VRAM_UPDATE
        elif ir == 0x00EE:
            if self.sp == 0:
                self.state = State.ERROR_POP_EMPTY_STACK
                return
            self.sp -= 1
            self.pc = self.stack[self.sp]
        else:
            self.state = State.NOT_IMPL

    def _op_jump(self, ir: int) -> None:
        addr = ir & 0x0FFF
        if addr == self.pc - 2:
            self.state = State.INFINITE_LOOP
            return
        self.pc = addr

    def _op_call(self, ir: int) -> None:
        if self.sp >= STACK_DEPTH:
            self.state = State.ERROR_STACK_FULL
            return
        self.stack[self.sp] = self.pc
        self.sp += 1
        self.pc = ir & 0x0FFF

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.pc = (self.pc + 2) & 0xFFFF

    def _op_skip_eq_imm(self, ir: int) -> None:
        self._skip_if(self.v[(ir >> 8) & 0xF] == ir & 0xFF)

    def _op_skip_ne_imm(self, ir: int) -> None:
        self._skip_if(self.v[(ir >> 8) & 0xF] != ir & 0xFF)

    def _op_skip_eq_reg(self, ir: int) -> None:
        self._skip_if(self.v[(ir >> 8) & 0xF] == self.v[(ir >> 4) & 0xF])

    def _op_skip_ne_reg(self, ir: int) -> None:
        self._skip_if(self.v[(ir >> 8) & 0xF] != self.v[(ir >> 4) & 0xF])

    def _op_load_imm(self, ir: int) -> None:
        self.v[(ir >> 8) & 0xF] = ir & 0xFF

    def _op_add_imm(self, ir: int) -> None:
        r = (ir >> 8) & 0xF
        self.v[r] = (self.v[r] + (ir & 0xFF)) & 0xFF

    def _op_alu(self, ir: int) -> None:
        xr = (ir >> 8) & 0xF
        yr = (ir >> 4) & 0xF
        x, y = self.v[xr], self.v[yr]
        op = ir & 0xF
        if op == 0x0:
            self.v[xr] = y
        elif op in (0x1, 0x2, 0x3):
            self.v[xr] = {0x1: x | y, 0x2: x & y, 0x3: x ^ y}[op]
            self.v[0xF] = 0
        elif op == 0x4:
            total = x + y
            self.v[xr] = total & 0xFF
            self.v[0xF] = int(total > 0xFF)
        elif op == 0x5:
            self.v[xr] = (x - y) & 0xFF
            self.v[0xF] = int(x >= y)
        elif op == 0x6:
            self.v[xr] = x >> 1
            self.v[0xF] = x & 1
        elif op == 0x7:
            self.v[xr] = (y - x) & 0xFF
            self.v[0xF] = int(y >= x)
        elif op == 0xE:
            self.v[xr] = (x << 1) & 0xFF
            self.v[0xF] = int(bool(x & 0x80))
        else:
            self.state = State.NOT_IMPL

    def _op_load_index(self, ir: int) -> None:
        self.index = ir & 0x0FFF

    def _op_jump_offset(self, ir: int) -> None:
        self.pc = (self.pc + self.v[0] + (ir & 0x0FFF)) & 0xFFFF

    def _op_random(self, ir: int) -> None:
        self.v[(ir >> 8) & 0xF] = (ir & 0xFF) & self._rng.randrange(256)

    def _op_draw(self, ir: int) -> None:
        sprite = self.ram[self.index:]
        self.draw(self.v[(ir >> 8) & 0xF], self.v[(ir >> 4) & 0xF], sprite, ir & 0xF)
        self.state = State.VRAM_UPDATE

    def _op_keys(self, ir: int) -> None:
        op = ir & 0xF0FF
        key = self.v[(ir >> 8) & 0xF] & 0xF
        if op == 0xE09E:
            self._skip_if(self.keypad.get(key) is KeyState.PRESSED)
        elif op == 0xE0A1:
            self._skip_if(self.keypad.get(key) is not KeyState.PRESSED)
        else:
            self.state = State.NOT_IMPL

    def _op_misc(self, ir: int) -> None:
        op = ir & 0xF0FF
        r = (ir >> 8) & 0xF
        if op == 0xF007:
            self.v[r] = self.delay_timer
        elif op == 0xF00A:
            self.state = State.WAIT_KEY
            self.cached_reg = r
        elif op == 0xF015:
            self.delay_timer = self.v[r]
        elif op == 0xF018:
            self.sound_timer = self.v[r]
        elif op == 0xF01E:
            self.index = (self.index + self.v[r]) & 0xFFFF
        elif op == 0xF029:
            self.index = (self.font_offset + (self.v[r] & 0xF) * 4) & 0xFFFF
        elif op == 0xF033:
            value = self.v[r]
            self.ram[self.index] = (value // 100) % 10
            self.ram[self.index + 1] = (value // 10) % 10
            self.ram[self.index + 2] = value % 10
        elif op == 0xF055:
            for i in range(r + 1):
                self.ram[self.index + i] = self.v[i]
            self.index = (self.index + r) & 0xFFFF
        elif op == 0xF065:
            for i in range(r + 1):
                self.v[i] = self.ram[self.index + i]
            self.index = (self.index + r) & 0xFFFF
        else:
            self.state = State.NOT_IMPL