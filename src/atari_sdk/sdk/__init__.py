"""
Atari 8-bit SDK Definitions
===========================

Hardware profiles (memory maps) and well-known register names for the
Atari 8-bit family.

    >>> from atari_sdk.sdk import ATARI_XL
    >>> ATARI_XL.register_name(0xD40A)
    'WSYNC'
    >>> ATARI_XL.is_reserved_for_write(0xE000)
    True
"""

from atari_sdk.sdk.hardware import (
    RegionKind,
    MemoryRegion,
    HardwareProfile,
    ATARI_REGISTERS,
    ATARI_XL,
    ATARI_800,
    PROFILES,
    DEFAULT_PROFILE,
    RESERVED_FOR_WRITE,
    VOLATILE_KINDS,
    get_profile,
)

__all__ = [
    "RegionKind",
    "MemoryRegion",
    "HardwareProfile",
    "ATARI_REGISTERS",
    "ATARI_XL",
    "ATARI_800",
    "PROFILES",
    "DEFAULT_PROFILE",
    "RESERVED_FOR_WRITE",
    "VOLATILE_KINDS",
    "get_profile",
]
