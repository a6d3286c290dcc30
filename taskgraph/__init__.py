"""
Task dependency and hierarchy graph engine.
"""
__version__ = "0.1.0"
