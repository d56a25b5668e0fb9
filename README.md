# chip9

A CHIP-8 virtual machine in Python, with a small pygame window to run ROMs in.

The machine has 4095 bytes of memory, and programs are loaded at `0x200`. It also has a
64×32 monochrome display, sixteen 8-bit registers (`V0`–`VF`) and a 16-entry call stack.
Its delay and sound timers each count down by one every 16 ms. The built-in hexadecimal
font is placed at `0x050`.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Running a ROM

```
chip9 path/to/game.ch8
```

If no path is given on the command line, the program reads a file name from standard input.
It uses the first word of the line, cut to at most 30 characters. If the file cannot be read,
or is too large for memory, `rom <path> load faild` is printed and the command exits with
status 1.

The window is 800×600. The display is drawn ten times enlarged over a checkerboard
background. Lit pixels are dark grey. A pixel that switches off does not vanish at once: it
lightens step by step each time the screen is redrawn, which cuts down on flicker. The
machine runs one instruction per pass of the main loop, with a 2 ms pause between passes.

Execution stops in the following cases:

- a jump to its own address (`INFINITE LOOP` is printed);
- an unknown instruction;
- a call with a full stack;
- a return with an empty stack.

For the last three, a line of the form `ERROR: <state>, PC=<pc>,IR=<instruction>` is printed.
The window stays open until it is closed.

### Keypad

The hexadecimal keypad

```
1 2 3 C
4 5 6 D
7 8 9 E
A 0 B F
```

is mapped onto the keyboard as

```
1 2 3 4
Q W E R
A S D F
Z X C V
```

`FX0A` (wait for a key) finishes when a key is released, not when it is pressed. The lowest
released key is stored in `Vx`.

### Instruction behaviour

- `8XY1`, `8XY2` and `8XY3` set `VF` to 0.
- `8XY6` and `8XYE` shift `Vx` itself.
- `FX55` and `FX65` add `x` to `I`.
- `BNNN` adds `V0 + NNN` to the program counter.
- `FX29` sets `I` to the font offset plus four times the low nibble of `Vx`.
- `DXYN` clips sprites at the screen edges after the start position wraps around.

## Using the machine from Python

```python
import random

from chip9.machine import Chip8, Keypad, State

keypad = Keypad()
machine = Chip8(keypad, clock=lambda: 0, rng=random.Random(0))
machine.reset(bytes([0x60, 0x2A, 0x12, 0x02]))  # V0 = 0x2A; jump to self

while machine.state is State.RUNNING:
    machine.fetch()
    machine.execute()

print(machine.state_str())   # st:  0,dt:  0,state:STATE_INFINITE_LOOP
print(machine.debug_info())
```

The constructor arguments work as follows:

- `clock` is a function that returns milliseconds; the timers are driven by it.
- `rng` is a `random.Random`, used by `CXNN`.

`Chip8.reset(rom, font=None, font_offset=0)` raises `ValueError` in two cases: when the ROM
is empty or too large, and when the font does not fit in memory.

Other methods and helpers on the machine:

- `Chip8.read_vram(x, y)` reports whether a pixel is lit.
- `Chip8.set_key_state(key_id, pressed)` marks a key as pressed or released.
- `Chip8.update_timer()` counts the timers down.
- `Keypad.clear_released()` turns released keys back to `KeyState.NONE`.

`chip9.runner` ties a machine to a display:

- `load_file(path, max_len)` reads a ROM and raises `RomLoadError` on failure.
- `Emulator(machine, screen, out)` drives the machine. `Emulator.start(path)` loads a ROM.
- `Emulator.update()` runs one fetch–execute–timer cycle. It redraws the screen when video
  memory changes, and returns `False` once execution has stopped.
- Any object with `clear_screen()` and `screen_pixel(x, y, on)` methods can serve as the
  screen. `chip9.app.PixelScreen` is the one the window uses.

## What it does not do

- There is no sound: the sound timer counts down, but nothing plays a tone.
- There is no speed setting, debugger, save state or ROM picker.