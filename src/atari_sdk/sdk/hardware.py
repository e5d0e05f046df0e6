"""
Atari 8-bit Hardware Profiles
=============================

This module describes the memory map of the Atari 8-bit computers as seen
by generated code. The backend consults a HardwareProfile to answer three
questions about an address:

1. Is a write to it a hardware fault risk? (ROM, cartridge control, unmapped
   I/O space and the 6502 stack page are reserved for writes.)
2. Is it volatile? (Memory-mapped I/O and the OS-owned RAM in page zero and
   pages 2-3 change behind the program's back, so the optimizer must never
   drop or merge accesses to them.)
3. Does it have a well-known name? (WSYNC, COLBK, VCOUNT...) Named registers
   are rendered symbolically in the emitted assembly and the disassembly.

Memory Map (XL/XE)
------------------
    $0000-$007F  OS zero page (volatile)
    $0080-$00FF  Free zero page (the allocator's default window)
    $0100-$01FF  6502 hardware stack (reserved for writes)
    $0200-$03FF  OS vectors and shadow registers (volatile)
    $0400-$BFFF  RAM
    $C000-$CFFF  OS ROM
    $D000-$D0FF  GTIA
    $D100-$D1FF  Unmapped I/O
    $D200-$D2FF  POKEY
    $D300-$D3FF  PIA
    $D400-$D4FF  ANTIC
    $D500-$D5FF  Cartridge control (CCTL)
    $D600-$D7FF  Unmapped I/O
    $D800-$FFFF  Floating point package and OS ROM

The 400/800 differ only in $C000-$CFFF, which is unmapped there.

Reference
---------
- Atari Home Computer System Hardware Manual
- Mapping the Atari, Revised Edition (Ian Chadwick)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# =============================================================================
# Region Kinds
# =============================================================================

class RegionKind(Enum):
    """Classification of an address range."""
    RAM = "ram"
    OS_RAM = "os-ram"
    STACK = "stack"
    ROM = "rom"
    IO = "io"
    CARTRIDGE_CONTROL = "cartridge-control"
    UNMAPPED = "unmapped"

    def __str__(self) -> str:
        return self.value


# Writing to any of these is a crash-safety finding
RESERVED_FOR_WRITE = frozenset({
    RegionKind.STACK,
    RegionKind.ROM,
    RegionKind.CARTRIDGE_CONTROL,
    RegionKind.UNMAPPED,
})

VOLATILE_KINDS = frozenset({RegionKind.IO, RegionKind.OS_RAM})


@dataclass(frozen=True)
class MemoryRegion:
    """
    An inclusive address range with a classification.

    Attributes:
        start: First address in the region
        end: Last address in the region (inclusive)
        kind: What lives there
        name: Short human-readable name for diagnostics
    """
    start: int
    end: int
    kind: RegionKind
    name: str

    def __contains__(self, address: int) -> bool:
        return self.start <= address <= self.end

    def __str__(self) -> str:
        return f"{self.name} (${self.start:04X}-${self.end:04X})"


# =============================================================================
# Well-Known Registers
# =============================================================================
# Only registers that generated code and the runtime library commonly touch.
# Names follow "Mapping the Atari".
# =============================================================================

ATARI_REGISTERS: tuple[tuple[str, int], ...] = (
    # OS zero page
    ("RTCLOK", 0x0012),
    ("ATRACT", 0x004D),
    ("SAVMSC", 0x0058),
    # OS shadow registers
    ("SDMCTL", 0x022F),
    ("SDLSTL", 0x0230),
    ("COLOR0", 0x02C4),
    ("COLOR1", 0x02C5),
    ("COLOR2", 0x02C6),
    ("COLOR3", 0x02C7),
    ("COLOR4", 0x02C8),
    ("STICK0", 0x0278),
    ("STRIG0", 0x0284),
    ("CH", 0x02FC),
    # GTIA
    ("HPOSP0", 0xD000),
    ("COLPF0", 0xD016),
    ("COLPF1", 0xD017),
    ("COLPF2", 0xD018),
    ("COLPF3", 0xD019),
    ("COLBK", 0xD01A),
    ("PAL", 0xD014),
    ("CONSOL", 0xD01F),
    # POKEY
    ("AUDF1", 0xD200),
    ("AUDC1", 0xD201),
    ("RANDOM", 0xD20A),
    ("IRQEN", 0xD20E),
    ("SKCTL", 0xD20F),
    # PIA
    ("PORTA", 0xD300),
    ("PORTB", 0xD301),
    # ANTIC
    ("DMACTL", 0xD400),
    ("CHACTL", 0xD401),
    ("DLISTL", 0xD402),
    ("WSYNC", 0xD40A),
    ("VCOUNT", 0xD40B),
    ("NMIEN", 0xD40E),
    # Cartridge control
    ("CCTL", 0xD500),
)


# =============================================================================
# Hardware Profile
# =============================================================================

@dataclass(frozen=True)
class HardwareProfile:
    """
    Memory map of one machine configuration.

    Regions must not overlap. Addresses that fall in no region are treated
    as plain RAM.
    """
    name: str
    regions: tuple[MemoryRegion, ...]
    registers: tuple[tuple[str, int], ...] = ATARI_REGISTERS

    def region_at(self, address: int) -> Optional[MemoryRegion]:
        """Return the region containing address, or None for plain RAM."""
        address &= 0xFFFF
        for region in self.regions:
            if address in region:
                return region
        return None

    def kind_at(self, address: int) -> RegionKind:
        region = self.region_at(address)
        return region.kind if region else RegionKind.RAM

    def is_reserved_for_write(self, address: int) -> bool:
        return self.kind_at(address) in RESERVED_FOR_WRITE

    def is_volatile(self, address: int) -> bool:
        return self.kind_at(address) in VOLATILE_KINDS

    def register_name(self, address: int) -> Optional[str]:
        """Return the well-known name for address, if it has one."""
        for name, reg_address in self.registers:
            if reg_address == address:
                return name
        return None

    def register_address(self, name: str) -> Optional[int]:
        upper = name.upper()
        for reg_name, address in self.registers:
            if reg_name == upper:
                return address
        return None

    @property
    def register_map(self) -> dict[str, int]:
        return dict(self.registers)


def _common_regions(c000_kind: RegionKind, c000_name: str) -> tuple[MemoryRegion, ...]:
    return (
        MemoryRegion(0x0000, 0x007F, RegionKind.OS_RAM, "OS zero page"),
        MemoryRegion(0x0100, 0x01FF, RegionKind.STACK, "hardware stack"),
        MemoryRegion(0x0200, 0x03FF, RegionKind.OS_RAM, "OS vectors and shadows"),
        MemoryRegion(0xC000, 0xCFFF, c000_kind, c000_name),
        MemoryRegion(0xD000, 0xD0FF, RegionKind.IO, "GTIA"),
        MemoryRegion(0xD100, 0xD1FF, RegionKind.UNMAPPED, "unmapped I/O"),
        MemoryRegion(0xD200, 0xD2FF, RegionKind.IO, "POKEY"),
        MemoryRegion(0xD300, 0xD3FF, RegionKind.IO, "PIA"),
        MemoryRegion(0xD400, 0xD4FF, RegionKind.IO, "ANTIC"),
        MemoryRegion(0xD500, 0xD5FF, RegionKind.CARTRIDGE_CONTROL, "cartridge control"),
        MemoryRegion(0xD600, 0xD7FF, RegionKind.UNMAPPED, "unmapped I/O"),
        MemoryRegion(0xD800, 0xFFFF, RegionKind.ROM, "OS ROM"),
    )


ATARI_XL = HardwareProfile(
    name="atari-xl",
    regions=_common_regions(RegionKind.ROM, "OS ROM"),
)

ATARI_800 = HardwareProfile(
    name="atari-800",
    regions=_common_regions(RegionKind.UNMAPPED, "unmapped"),
)

PROFILES: dict[str, HardwareProfile] = {
    ATARI_XL.name: ATARI_XL,
    ATARI_800.name: ATARI_800,
}

DEFAULT_PROFILE = ATARI_XL


def get_profile(name: str) -> HardwareProfile:
    """
    Look up a hardware profile by name.

    Raises:
        KeyError: If no profile has that name
    """
    try:
        return PROFILES[name.lower()]
    except KeyError:
        available = ", ".join(sorted(PROFILES))
        raise KeyError(f"unknown hardware profile '{name}' (available: {available})") from None
