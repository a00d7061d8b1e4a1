from relayflow.callbacks.base import BaseCallback, RunCallback
from relayflow.callbacks.logging import LoggingCallback

__all__ = ["RunCallback", "BaseCallback", "LoggingCallback"]
