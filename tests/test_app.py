import pygame
import pytest

from chip9.app import (
    BACKGROUND,
    BG_DARK,
    BG_LIGHT,
    FADE_STEP,
    FOREGROUND,
    PixelScreen,
    checkerboard,
    key_index,
)


def test_fresh_screen_is_unwritten():
    screen = PixelScreen(64, 32)
    assert screen.shade(0, 0) == 0
    assert screen.shade(63, 31) == 0
    assert screen.changed is True


def test_pixel_on_uses_foreground():
    screen = PixelScreen(64, 32)
    screen.screen_pixel(3, 4, True)
    assert screen.shade(3, 4) == FOREGROUND


def test_pixel_off_on_fresh_screen_is_background():
    screen = PixelScreen(64, 32)
    screen.screen_pixel(3, 4, False)
    assert screen.shade(3, 4) == BACKGROUND


def test_pixel_fades_after_switching_off():
    screen = PixelScreen(64, 32)
    screen.screen_pixel(1, 1, True)
    screen.screen_pixel(1, 1, False)
    assert screen.shade(1, 1) == FOREGROUND + FADE_STEP
    levels = []
    for _ in range(10):
        screen.screen_pixel(1, 1, False)
        levels.append(screen.shade(1, 1))
    assert levels == sorted(levels)
    assert levels[-1] == BACKGROUND


def test_pixel_on_again_resets_fade():
    screen = PixelScreen(64, 32)
    screen.screen_pixel(2, 2, True)
    screen.screen_pixel(2, 2, False)
    screen.screen_pixel(2, 2, True)
    assert screen.shade(2, 2) == FOREGROUND


def test_clear_screen_marks_changed():
    screen = PixelScreen(64, 32)
    screen.changed = False
    screen.clear_screen()
    assert screen.changed is True


def test_checkerboard_shape_and_pattern():
    board = checkerboard(64, 32)
    assert len(board) == 32
    assert all(len(row) == 64 for row in board)
    assert board[0][0] == BG_LIGHT
    assert board[0][1] == BG_DARK
    for y in range(32):
        for x in range(63):
            assert board[y][x] != board[y][x + 1]
    for y in range(31):
        for x in range(64):
            assert board[y][x] != board[y + 1][x]


@pytest.mark.parametrize(
    "keycode, index",
    [
        (pygame.K_x, 0x0),
        (pygame.K_1, 0x1),
        (pygame.K_q, 0x4),
        (pygame.K_z, 0xA),
        (pygame.K_4, 0xC),
        (pygame.K_v, 0xF),
    ],
)
def test_key_index_layout(keycode, index):
    assert key_index(keycode) == index


def test_key_index_unmapped():
    assert key_index(pygame.K_p) is None


def test_key_index_covers_whole_keypad():
    keys = [
        pygame.K_x, pygame.K_1, pygame.K_2, pygame.K_3,
        pygame.K_q, pygame.K_w, pygame.K_e, pygame.K_a,
        pygame.K_s, pygame.K_d, pygame.K_z, pygame.K_c,
        pygame.K_4, pygame.K_r, pygame.K_f, pygame.K_v,
    ]
    assert sorted(key_index(k) for k in keys) == list(range(16))