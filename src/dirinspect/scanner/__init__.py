"""
Content search over traversed files
"""

from .content_scanner import ContentScanner, ScanResult

__all__ = ["ContentScanner", "ScanResult"]
