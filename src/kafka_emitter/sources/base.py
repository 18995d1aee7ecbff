from dataclasses import dataclass
from typing import Optional, Protocol

from ..types import BlockNumHash, ChainSpec, SegmentEvent


class NotificationSource(Protocol):
    """Ordered stream of segment events from the node"""

    def set_head(self, head: BlockNumHash) -> None:
        """Stream events for blocks after `head` instead of the stored head"""
        ...

    async def next(self) -> Optional[SegmentEvent]:
        """Next event, or None once the stream has ended"""
        ...

    def finished_height(self, height: BlockNumHash) -> None:
        """Acknowledge that every block up to `height` has been processed"""
        ...


class BlockHashReader(Protocol):
    async def block_hash(self, number: int) -> Optional[bytes]: ...


@dataclass
class NodeContext:
    chain: ChainSpec
    provider: BlockHashReader
    notifications: NotificationSource
