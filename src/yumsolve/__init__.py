from __future__ import annotations

"""
yumsolve - dependency resolution against YUM/RPM repository metadata

Locates the best matching package for a name or a capability requirement
in a local copy of a repository's primary catalog, stored either as the
SQLite database (primary_db) or as the XML document (primary).
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Make version accessible
from importlib.metadata import version as _version

try:
    __version__ = _version("yumsolve")
except Exception:
    # Package not installed yet
    pass
