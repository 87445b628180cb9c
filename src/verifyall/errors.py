"""Exception types shared across verifyall."""

from __future__ import annotations


class VerifyError(Exception):
    """Base class for verifyall errors.

    Stage failures are not exceptions: they are recorded in the
    pipeline outcome. These types cover misconfiguration and misuse.
    """


class UnknownToolError(VerifyError, KeyError):
    """Raised when probing a tool that has no registered query."""

    def __init__(self, tool_id: str) -> None:
        self.tool_id = tool_id
        super().__init__(f"No capability query registered for tool '{tool_id}'")

    def __str__(self) -> str:
        return str(self.args[0])
