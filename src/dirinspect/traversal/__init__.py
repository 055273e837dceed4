"""
Directory traversal and the per-session path list
"""

from .traverser import DirectoryTraverser, TraversalResult
from .path_list import PathList

__all__ = ["DirectoryTraverser", "TraversalResult", "PathList"]
