"""NES standard controller fed from keyboard state."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field

from gones.config import Button, Config

TOGGLE_TRACE = "Tab"
TOGGLE_DEBUG = "Backquote"
STEP_FRAME = "Digit1"
RUN_TO_RENDER = "Digit2"


class Player(str, enum.Enum):
    PLAYER1 = "player1"
    PLAYER2 = "player2"


@dataclass
class InputKeymap:
    """Keys that drive each button, directly or as turbo."""

    regular: dict[Button, str] = field(default_factory=dict)
    turbo: dict[Button, str] = field(default_factory=dict)


def new_keymap(conf: Config, player: Player | str) -> InputKeymap:
    """Keymap for the given player taken from the config."""
    try:
        player = Player(player)
    except ValueError:
        raise ValueError(f"invalid player: {player}") from None
    keymap = conf.input.player1 if player is Player.PLAYER1 else conf.input.player2
    return InputKeymap(regular=keymap.get_map(), turbo=keymap.get_turbo_map())


@dataclass
class Controller:
    """Serial shift register exposing eight button states to the CPU."""

    keymap: InputKeymap = field(default_factory=InputKeymap)
    turbo_duty_cycle: int = 4
    enabled: bool = False
    turbo: int = 0
    _strobe: bool = field(default=False, init=False, repr=False)
    _index: int = field(default=0, init=False, repr=False)
    _buttons: list[bool] = field(default_factory=lambda: [False] * 8, init=False, repr=False)

    def write(self, data: int) -> None:
        """Set the strobe from bit 0; while set, reads restart at button A."""
        self._strobe = data & 1 == 1
        if self._strobe:
            self._index = 0

    def read(self) -> int:
        """Shift out the next button state."""
        if not self.enabled:
            return 0
        if self._index >= 8:
            return 1
        value = 1 if self._buttons[self._index] else 0
        if not self._strobe:
            self._index += 1
        return value

    def update_input(self, is_pressed: Callable[[str], bool]) -> None:
        """Refresh the button states from a key-pressed predicate."""
        turbo_pressed = False
        for button, key in self.keymap.regular.items():
            pressed = bool(key) and is_pressed(key)
            if not pressed:
                turbo_key = self.keymap.turbo.get(button)
                if turbo_key and is_pressed(turbo_key):
                    turbo_pressed = True
                    self._buttons[button] = self.turbo < self.turbo_duty_cycle // 2
                    continue
            self._buttons[button] = pressed

        # Opposite directions cannot be pressed together.
        if self._buttons[Button.LEFT] and self._buttons[Button.RIGHT]:
            self._buttons[Button.RIGHT] = False
        if self._buttons[Button.UP] and self._buttons[Button.DOWN]:
            self._buttons[Button.DOWN] = False

        if turbo_pressed:
            if self.turbo == (self.turbo_duty_cycle - 1) & 0xFFFF:
                self.turbo = 0
            else:
                self.turbo = (self.turbo + 1) & 0xFFFF
        else:
            self.turbo = 0


def new_controller(conf: Config, player: Player | str) -> Controller:
    """Controller for a player, enabled when it has any bound buttons."""
    keymap = new_keymap(conf, player)
    return Controller(
        keymap=keymap,
        turbo_duty_cycle=conf.input.turbo_duty_cycle,
        enabled=len(keymap.regular) != 0,
    )