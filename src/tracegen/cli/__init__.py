"""
tracegen Command-Line Interface
===============================

- **tracegen**: compile a trace test script into .pt and .exp files

The tool is a Click-based CLI application with help and error reporting.
"""

__all__ = ["tracegen"]
