"""Chain connection providers"""

from .base import ChainProvider, Provider
from .json_rpc import JsonRpcProvider
from .pool import ProviderPool

__all__ = [
    "Provider",
    "ChainProvider",
    "JsonRpcProvider",
    "ProviderPool",
]
