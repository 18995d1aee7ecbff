from .base import BlockHashReader, NodeContext, NotificationSource

__all__ = ["BlockHashReader", "NodeContext", "NotificationSource"]
