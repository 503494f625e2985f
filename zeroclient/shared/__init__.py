"""
Shared configuration and error types for the production client.
"""

from zeroclient.shared.config import Config
from zeroclient.shared.config_loader import load_config
from zeroclient.shared.errors import (
    ClientError,
    CorruptModelError,
    EngineError,
    FatalClientError,
    NetworkError,
    TransferError,
)

__all__ = [
    "ClientError",
    "Config",
    "CorruptModelError",
    "EngineError",
    "FatalClientError",
    "NetworkError",
    "TransferError",
    "load_config",
]
