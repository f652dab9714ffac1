"""
BNM struct generator.

Reads type metadata from a .NET assembly and writes C++ headers that proxy
the managed classes through BNM (ByNameModding).
"""

__version__ = "0.1.0"
