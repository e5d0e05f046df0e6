"""
Atari SDK Command-Line Interface
================================

This package provides command-line tools for the Atari SDK:

- **a8cc**: IR-to-6502 backend compiler
- **a8dis**: 6502 disassembler

Each tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["a8cc", "a8dis"]
