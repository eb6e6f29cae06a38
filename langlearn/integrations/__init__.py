"""
Integrations - Clients for services outside the learning engine.

Components:
- analysis_client: Writing and pronunciation assessment functions
"""

from langlearn.integrations.analysis_client import AnalysisResult, AnalysisServiceClient

__all__ = ["AnalysisResult", "AnalysisServiceClient"]
