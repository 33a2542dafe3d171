"""Wrapper keeping the wallet password out of logs and error messages."""

from __future__ import annotations

_MASK = "***"


class Secret:
    """Opaque credential; only :meth:`expose` returns the raw value."""

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = value

    def expose(self) -> str:
        return self._value

    def redact(self, text: str) -> str:
        """Return ``text`` with every occurrence of the secret masked."""

        if not self._value:
            return text
        return text.replace(self._value, _MASK)

    def __bool__(self) -> bool:
        return bool(self._value)

    def __repr__(self) -> str:
        return f"Secret({_MASK})"

    __str__ = __repr__
