"""
Matcher Service - LLM-based requirement extraction and candidate analysis.

Parses job descriptions into structured requirements and produces deep,
explained assessments for pre-screened candidates.
"""

from .deep_analyzer import AnalysisOutcome, DeepAnalyzer
from .job_parser import JobRequirementParser

__all__ = ["AnalysisOutcome", "DeepAnalyzer", "JobRequirementParser"]
