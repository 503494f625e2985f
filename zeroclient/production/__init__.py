"""
Production run: worker pool coordination, result aggregation and uploads.
"""

from zeroclient.production.coordinator import Production
from zeroclient.production.stats import ThroughputStats
from zeroclient.production.upload import UploadPipeline

__all__ = ["Production", "ThroughputStats", "UploadPipeline"]
