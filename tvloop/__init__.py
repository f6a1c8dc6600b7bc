"""
tvloop - Pseudo-live TV channel builder
"""

__version__ = "0.1.0"
