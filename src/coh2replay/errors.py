from __future__ import annotations


class ReplayError(ValueError):
    """Base error for anything that aborts a decode.

    Carries the absolute byte offset and the name of the field being read when they are known.
    """

    def __init__(self, message: str, *, offset: int | None = None, field: str | None = None) -> None:
        self.message = str(message)
        self.offset = offset
        self.field = field
        super().__init__(self._render())

    def _render(self) -> str:
        details: list[str] = []
        if self.field:
            details.append(f"field={self.field}")
        if self.offset is not None:
            details.append(f"offset={int(self.offset)}")
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class TruncatedInput(ReplayError):
    pass


class OutOfRange(ReplayError):
    pass


class UnsupportedContainerVersion(ReplayError):
    def __init__(self, version: int, *, expected: int, offset: int | None = None) -> None:
        self.version = int(version)
        self.expected = int(expected)
        super().__init__(
            f"unsupported chunky version {self.version} (expected {self.expected})",
            offset=offset,
            field="container.version",
        )


class MalformedChunkFraming(ReplayError):
    pass


class UnexpectedValue(ReplayError):
    """A tag or check byte inside a record holds a value the layout does not allow."""


__all__ = [
    "MalformedChunkFraming",
    "OutOfRange",
    "ReplayError",
    "TruncatedInput",
    "UnexpectedValue",
    "UnsupportedContainerVersion",
]
