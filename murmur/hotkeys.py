"""Global hotkey matching and the pynput listener that feeds it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from murmur.config import HotkeyConfig

logger = logging.getLogger(__name__)

MODIFIER_ALIASES = {
    "ctrl": "ctrl",
    "control": "ctrl",
    "shift": "shift",
    "alt": "alt",
    "option": "alt",
    "cmd": "cmd",
    "meta": "cmd",
    "super": "cmd",
    "win": "cmd",
}

# pynput key names and the modifier group they belong to
MODIFIER_GROUPS = {
    "ctrl": "ctrl",
    "ctrl_l": "ctrl",
    "ctrl_r": "ctrl",
    "shift": "shift",
    "shift_l": "shift",
    "shift_r": "shift",
    "alt": "alt",
    "alt_l": "alt",
    "alt_r": "alt",
    "alt_gr": "alt",
    "cmd": "cmd",
    "cmd_l": "cmd",
    "cmd_r": "cmd",
}

KEY_ALIASES = {
    "backquote": "`",
    "escape": "esc",
    "return": "enter",
    "spacebar": "space",
    "capslock": "caps_lock",
}

# pynput reports the shifted character while shift is held (US layout)
SHIFTED_KEYS = dict(zip("~!@#$%^&*()_+{}|:\"<>?", "`1234567890-=[]\\;',./"))

NAMED_KEYS = frozenset(
    {f"f{i}" for i in range(1, 21)}
    | {
        "space", "esc", "enter", "tab", "caps_lock", "backspace", "delete",
        "home", "end", "page_up", "page_down", "up", "down", "left", "right",
        "insert", "pause", "menu", "print_screen", "scroll_lock",
    }
    | set(MODIFIER_GROUPS)
)


class HotkeyEvent(str, Enum):
    KEY_DOWN = "keyDown"
    KEY_UP = "keyUp"
    CORRECTION_KEY_DOWN = "correctionKeyDown"
    CANCEL_KEY_DOWN = "cancelKeyDown"


@dataclass(frozen=True)
class KeyBinding:
    key: str
    modifiers: frozenset[str] = frozenset()

    def __str__(self) -> str:
        return "+".join([*sorted(self.modifiers), self.key])


@lru_cache(maxsize=64)
def parse_binding(spec: str) -> KeyBinding:
    """
    Parse a binding such as ``"ctrl+shift+space"`` or ``"f2"``.

    Raises:
        ValueError: If the binding is empty, names an unknown key, or has
            more than one non-modifier key.
    """
    if not spec or not spec.strip():
        raise ValueError("Empty hotkey binding")

    parts = [p.strip().lower() for p in spec.split("+")]
    if not all(parts):
        raise ValueError(f"Malformed hotkey {spec!r}")

    *modifier_names, primary = parts
    modifiers: set[str] = set()
    for name in modifier_names:
        if name not in MODIFIER_ALIASES:
            raise ValueError(f"Hotkey {spec!r} has more than one key")
        modifiers.add(MODIFIER_ALIASES[name])

    primary = KEY_ALIASES.get(primary, primary)
    if primary in SHIFTED_KEYS:
        primary = SHIFTED_KEYS[primary]
        modifiers.add("shift")
    if primary in MODIFIER_ALIASES:
        primary = MODIFIER_ALIASES[primary]
    elif len(primary) != 1 and primary not in NAMED_KEYS:
        raise ValueError(f"Unknown key {primary!r} in hotkey {spec!r}")
    return KeyBinding(key=primary, modifiers=frozenset(modifiers))


def key_name(key: Any) -> str | None:
    """Canonical name for a pynput ``Key`` or ``KeyCode``."""
    if key is None:
        return None
    name = getattr(key, "name", None)
    if name:
        return str(name)
    char = getattr(key, "char", None)
    if char:
        # Control characters are produced while ctrl is held
        if len(char) == 1 and ord(char) < 32:
            char = chr(ord(char) + 96)
        char = char.lower()
        return SHIFTED_KEYS.get(char, char)
    vk = getattr(key, "vk", None)
    return f"vk{vk}" if vk is not None else None


class HotkeyDispatcher:
    """
    Turns raw key presses into semantic hotkey events.

    The binding table is read from the current config on every key event, so
    an ``update_config`` call takes effect on the next press. Events are handed
    to ``publish``, which must be safe to call from the listener thread.
    """

    def __init__(
        self,
        config: "HotkeyConfig",
        publish: Callable[[HotkeyEvent], None],
    ) -> None:
        self._config = config
        self._publish = publish
        self._pressed: set[str] = set()
        self._active_down: str | None = None
        self._listener: Any = None

    @property
    def config(self) -> "HotkeyConfig":
        return self._config

    def update_config(self, config: "HotkeyConfig") -> None:
        self._config = config
        logger.info("Updated hotkeys: %s", config.active_key)

    def press(self, name: str | None) -> None:
        if name is None:
            return
        repeat = name in self._pressed
        self._pressed.add(name)
        if repeat:
            return

        config = self._config
        if self._matches(parse_binding(config.active_key), name):
            self._active_down = config.active_key
            self._publish(HotkeyEvent.KEY_DOWN)
        elif config.correction_key and self._matches(parse_binding(config.correction_key), name):
            self._publish(HotkeyEvent.CORRECTION_KEY_DOWN)
        elif self._matches(parse_binding(config.cancel_key), name):
            self._publish(HotkeyEvent.CANCEL_KEY_DOWN)

    def release(self, name: str | None) -> None:
        if name is None:
            return
        self._pressed.discard(name)
        if self._active_down is None:
            return
        if _key_matches(parse_binding(self._active_down).key, name):
            self._active_down = None
            self._publish(HotkeyEvent.KEY_UP)

    def _matches(self, binding: KeyBinding, name: str) -> bool:
        if not _key_matches(binding.key, name):
            return False
        held = {MODIFIER_GROUPS[k] for k in self._pressed if k in MODIFIER_GROUPS}
        held.discard(MODIFIER_GROUPS.get(name, ""))
        return held == set(binding.modifiers)

    def start(self) -> None:
        """Start the global keyboard listener."""
        from pynput import keyboard

        if self._listener is not None:
            return

        logger.info("Starting hotkey listener...")
        self._listener = keyboard.Listener(
            on_press=lambda key: self.press(key_name(key)),
            on_release=lambda key: self.release(key_name(key)),
        )
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            logger.info("Stopping hotkey listener...")
            listener.stop()
            self._listener = None


def _key_matches(binding_key: str, name: str) -> bool:
    return binding_key == name or MODIFIER_GROUPS.get(name) == binding_key
