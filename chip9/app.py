"""Windowed front end: keyboard mapping, pixel shading and the main loop."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional, Sequence

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402

from chip9.machine import SCREEN_HEIGHT, SCREEN_WIDTH, Chip8, KeyState  # noqa: E402
from chip9.runner import Emulator, RomLoadError  # noqa: E402

FOREGROUND = 20
BACKGROUND = 255
FADE_STEP = 40
BG_DARK = 135
BG_LIGHT = 150

WINDOW_SIZE = (800, 600)
DRAW_SCALE = 10
DRAW_ORIGIN = (100, 100)
FRAME_DELAY_MS = 2

# Hex keypad layout:
# 1 2 3 C
# 4 5 6 D
# 7 8 9 E
# A 0 B F
_KEY_MAP = (
    pygame.K_x, pygame.K_1, pygame.K_2, pygame.K_3,
    pygame.K_q, pygame.K_w, pygame.K_e, pygame.K_a,
    pygame.K_s, pygame.K_d, pygame.K_z, pygame.K_c,
    pygame.K_4, pygame.K_r, pygame.K_f, pygame.K_v,
)
_KEY_LOOKUP = {code: index for index, code in enumerate(_KEY_MAP)}


def key_index(keycode: int) -> Optional[int]:
    """Keypad index for a keyboard key code, or None when it is unmapped."""
    return _KEY_LOOKUP.get(keycode)


def checkerboard(width: int, height: int) -> List[List[int]]:
    """Grey levels of the checkered background behind the display."""
    rows = []
    flag = True
    for _ in range(height):
        row = []
        for _ in range(width):
            flag = not flag
            row.append(BG_DARK if flag else BG_LIGHT)
        rows.append(row)
        flag = not flag
    return rows


class PixelScreen:
    """Grey-level display where switched-off pixels fade out gradually."""

    def __init__(self, width: int = SCREEN_WIDTH, height: int = SCREEN_HEIGHT) -> None:
        self.width = width
        self.height = height
        self._shade = [[0] * width for _ in range(height)]
        self.changed = True

    def clear_screen(self) -> None:
        """Mark the screen as needing a redraw."""
        self.changed = True

    def screen_pixel(self, x: int, y: int, on: bool) -> None:
        current = self._shade[y][x]
        if current > 0 and not on:
            current = min(current + FADE_STEP, BACKGROUND)
        else:
            current = FOREGROUND if on else BACKGROUND
        self._shade[y][x] = current

    def shade(self, x: int, y: int) -> int:
        """Grey level of a pixel; 0 means it was never written."""
        return self._shade[y][x]

    def surface(self) -> "pygame.Surface":
        surf = pygame.Surface((self.width, self.height), pygame.SRCALPHA)
        for y, row in enumerate(self._shade):
            for x, level in enumerate(row):
                alpha = 0 if level == 0 else 255 - level
                surf.set_at((x, y), (level, level, level, alpha))
        return surf


def _background_surface(width: int, height: int) -> "pygame.Surface":
    surf = pygame.Surface((width, height), pygame.SRCALPHA)
    for y, row in enumerate(checkerboard(width, height)):
        for x, level in enumerate(row):
            surf.set_at((x, y), (level, level, level, 255))
    return surf


def _read_rom_path() -> str:
    line = sys.stdin.readline().split()
    return line[0][:30] if line else ""


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="chip9", description="Run a CHIP-8 program.")
    parser.add_argument("rom", nargs="?", help="ROM file; read from standard input if omitted")
    args = parser.parse_args(argv)

    pygame.init()
    try:
        window = pygame.display.set_mode(WINDOW_SIZE)
        pygame.display.set_caption("other chip8 simulator")

        path = args.rom if args.rom else _read_rom_path()
        screen = PixelScreen()
        emulator = Emulator(Chip8(), screen, sys.stdout)
        try:
            emulator.start(path)
        except RomLoadError:
            return 1

        keypad = emulator.machine.keypad
        size = (SCREEN_WIDTH * DRAW_SCALE, SCREEN_HEIGHT * DRAW_SCALE)
        background = pygame.transform.scale(
            _background_surface(SCREEN_WIDTH, SCREEN_HEIGHT), size
        )

        running = True
        while running:
            keypad.clear_released()
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type in (pygame.KEYDOWN, pygame.KEYUP):
                    index = key_index(event.key)
                    if index is not None:
                        pressed = event.type == pygame.KEYDOWN
                        keypad.set(index, KeyState.PRESSED if pressed else KeyState.RELEASE)

            emulator.update()

            if screen.changed:
                window.blit(background, DRAW_ORIGIN)
                window.blit(pygame.transform.scale(screen.surface(), size), DRAW_ORIGIN)
                pygame.display.flip()
                screen.changed = False

            pygame.time.delay(FRAME_DELAY_MS)
        return 0
    finally:
        pygame.quit()


if __name__ == "__main__":
    sys.exit(main())