"""
mobilebook - travel-aware appointment availability for mobile service providers.
"""

__version__ = "0.1.0"
