# Domain Interfaces Package
"""
Contracts implemented by infrastructure components.
"""

from .extractor_interface import ContentExtractor

__all__ = ["ContentExtractor"]
