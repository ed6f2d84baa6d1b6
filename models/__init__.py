"""
Models package for pgscript.

This package contains the value model and connection parameter model.
"""
