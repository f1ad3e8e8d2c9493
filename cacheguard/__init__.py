"""
Cacheguard

Read-through Redis cache in front of a SQL system of record, with defenses
against cache penetration, breakdown and avalanche.
"""

from .constants import APP_VERSION as __version__

__all__ = ["__version__"]
