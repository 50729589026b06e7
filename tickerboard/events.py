from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol, Union


class Key(Enum):
    UP = auto()
    DOWN = auto()
    LEFT = auto()
    RIGHT = auto()
    ENTER = auto()
    ESCAPE = auto()
    QUIT = auto()
    SORT_PRICE = auto()  # F5
    SORT_CHANGE = auto()  # F6
    FOLLOW = auto()  # f
    REFRESH = auto()  # r
    RESIZE = auto()


class Button(Enum):
    LEFT = auto()
    RIGHT = auto()
    WHEEL_UP = auto()
    WHEEL_DOWN = auto()


@dataclass(frozen=True)
class MouseEvent:
    x: int
    y: int
    button: Button


InputEvent = Union[Key, MouseEvent]


class InputSource(Protocol):
    def poll(self, timeout_ms: int) -> InputEvent | None: ...
