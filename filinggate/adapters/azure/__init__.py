"""
Azure Adapter - Document Intelligence layout (fallback provider).
"""

from .client import AzureLayoutProvider, map_analyze_result

__all__ = ["AzureLayoutProvider", "map_analyze_result"]
