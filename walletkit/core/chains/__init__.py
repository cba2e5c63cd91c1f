from .models import Network
from .registry import ChainRegistry

__all__ = [
    "Network",
    "ChainRegistry",
]
