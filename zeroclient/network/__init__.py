"""
Server communication: transfer agents and the best-network store.
"""

from zeroclient.network.model_store import ModelStore, RetryPolicy
from zeroclient.network.transfer import HttpTransferAgent, TransferAgent

__all__ = ["HttpTransferAgent", "ModelStore", "RetryPolicy", "TransferAgent"]
