"""
Top-level module for kmerfetch: extraction of k-mer matching reads from BWT-indexed read archives.
"""
from importlib.metadata import version as _load_version, PackageNotFoundError

try: __version__ = _load_version('kmerfetch')
except PackageNotFoundError: __version__ = '0.0.0'


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class KmerfetchError(Exception):
    """Base class for all kmerfetch errors."""

class KmerfetchWarning(Warning): pass
