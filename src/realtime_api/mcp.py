"""
MCP call progress tracking.

The wire protocol never sends a single status for an MCP call; progress is
reconstructed from ``response.mcp_call_arguments.*``, ``response.mcp_call.*``
and item lifecycle events into an :class:`MCPCallStep`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.realtime_api.items import ItemStatus


class MCPCallStep(Enum):
    """
    Progress of one MCP call item.

    Nominal path: ``ADDED -> CALL_IN_PROGRESS -> CALL_COMPLETED ->
    RESPONSE_IN_PROGRESS -> RESPONSE_COMPLETED``. ``CALL_INCOMPLETE`` and
    ``RESPONSE_INCOMPLETE`` are terminal failures. Members compare in
    declaration order.
    """

    ADDED = ("added", None)
    CALL_IN_PROGRESS = ("call", ItemStatus.IN_PROGRESS)
    CALL_INCOMPLETE = ("call", ItemStatus.INCOMPLETE)
    CALL_COMPLETED = ("call", ItemStatus.COMPLETED)
    RESPONSE_IN_PROGRESS = ("response", ItemStatus.IN_PROGRESS)
    RESPONSE_INCOMPLETE = ("response", ItemStatus.INCOMPLETE)
    RESPONSE_COMPLETED = ("response", ItemStatus.COMPLETED)

    def __str__(self) -> str:
        phase, status = self.value
        return phase if status is None else f"{phase}({status.value})"

    @classmethod
    def call(cls, status: ItemStatus) -> "MCPCallStep":
        return cls(("call", ItemStatus(status)))

    @classmethod
    def response(cls, status: ItemStatus) -> "MCPCallStep":
        return cls(("response", ItemStatus(status)))

    @property
    def phase(self) -> str:
        return self.value[0]

    @property
    def status(self) -> Optional[ItemStatus]:
        return self.value[1]

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, MCPCallStep):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, MCPCallStep):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, MCPCallStep):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, MCPCallStep):
            return NotImplemented
        return self.rank >= other.rank

    @property
    def is_complete(self) -> bool:
        """Both the call and the response phase have completed."""
        return self is MCPCallStep.RESPONSE_COMPLETED

    @property
    def is_incomplete(self) -> bool:
        """Either the call or the response phase has failed."""
        return self in (MCPCallStep.CALL_INCOMPLETE, MCPCallStep.RESPONSE_INCOMPLETE)

    @property
    def is_in_progress(self) -> bool:
        return self in (
            MCPCallStep.ADDED,
            MCPCallStep.CALL_IN_PROGRESS,
            MCPCallStep.CALL_COMPLETED,
            MCPCallStep.RESPONSE_IN_PROGRESS,
        )

    @property
    def is_response_finished(self) -> bool:
        return self in (MCPCallStep.RESPONSE_COMPLETED, MCPCallStep.RESPONSE_INCOMPLETE)


_ORDER = list(MCPCallStep)


@dataclass
class MCPTracking:
    """Out-of-band MCP progress for one item id."""

    call_step: Optional[MCPCallStep] = None
    list_tools_status: Optional[ItemStatus] = None
    call_last_event_id: Optional[str] = None
    list_tools_last_event_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.call_step is None
            and self.list_tools_status is None
            and self.call_last_event_id is None
            and self.list_tools_last_event_id is None
        )
