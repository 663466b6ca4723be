"""
Provider availability and fulfillment scheduling engine for a UHI gateway.
"""

__version__ = "0.1.0"
