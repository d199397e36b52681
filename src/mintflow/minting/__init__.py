from .orchestrator import MintOrchestrator, StatusListener
from .flows import setup_event_bus

__all__ = [
    "MintOrchestrator",
    "StatusListener",
    "setup_event_bus",
]
