"""
Database package for pgscript.
This package contains connection, parsing, decoding and execution functionality.
"""
