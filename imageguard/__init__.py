"""
imageguard - category image integrity and migration engine.
"""
__version__ = "0.1.0"
