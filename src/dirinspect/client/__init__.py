"""
Requesting side of the inspection protocol
"""

from .client import InspectClient, ProtocolError, parse_total_files, parse_matches, parse_listed_files

__all__ = ["InspectClient", "ProtocolError", "parse_total_files", "parse_matches", "parse_listed_files"]
