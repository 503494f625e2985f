"""
Self-play production client.

Runs concurrent self-play games against the server's best network and
submits the finished games for training.
"""

__version__ = "0.16.0"
