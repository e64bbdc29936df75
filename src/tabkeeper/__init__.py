"""
tabkeeper - automatic per-tab page saving driven by tab lifecycle events.
"""

__version__ = "0.1.0"
