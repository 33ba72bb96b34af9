"""
The Weather Spectrum: weather site, hail impact map and push notification relay.
"""

__version__ = '1.0.0'
