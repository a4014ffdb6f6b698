"""
tubegate — self-hosted YouTube streaming gateway
"""

__version__ = "1.0.0"
