"""
Matching Pipeline - Two-stage CV-to-job matching.
Parse → Pre-screen → Deep analysis → Final ranking.
"""

from .api import handle_match_request
from .orchestrator import MatchingPipeline

__all__ = ["MatchingPipeline", "handle_match_request"]
