# =============================================================================
# test_validator.py - Crash-Safety Validator Tests
# =============================================================================
# Tests for the static hardware-fault checks:
#   - Undocumented, unstable, JAM and BRK opcodes
#   - Writes into reserved regions and read-modify-write on I/O
#   - Stack balance per subroutine
#   - Addressing hazards (zero-page wrap, page crossing, JMP ($xxFF))
#   - Falling off the end of the program
#   - Permissive vs strict severity
# =============================================================================

import pytest

from atari_sdk.backend import BackendConfig, CrashSafetyValidator, Instruction, InstructionStream, Label, Operand, Origin
from atari_sdk.cpu import AddressingMode
from atari_sdk.errors import (
    DiagnosticCode,
    HardwareFaultRiskError,
    IllegalAddressingModeError,
    Severity,
)
from atari_sdk.sdk.hardware import ATARI_800

M = AddressingMode


def program(*body, entry="main"):
    """Wrap instructions in an entry label and a final RTS."""
    return InstructionStream([Label("main"), *body, Instruction("RTS")], entry=entry)


def findings(stream, strict=False, **options):
    return CrashSafetyValidator(BackendConfig(nocrash=strict, **options)).validate(stream)


def messages(stream, **options):
    return [d.message for d in findings(stream, **options)]


# =============================================================================
# Opcodes
# =============================================================================

class TestOpcodes:
    """Test opcode-level checks."""

    def test_clean_program(self):
        stream = program(
            Instruction("LDA", Operand.immediate(1)),
            Instruction("STA", Operand.memory(0x80)),
            Instruction("STA", Operand.memory(0xD01A, symbol="COLBK"), volatile=True),
        )
        assert findings(stream) == []

    def test_undocumented(self):
        stream = program(Instruction("LAX", Operand.memory(0x80)))
        (diagnostic,) = findings(stream)
        assert diagnostic.severity is Severity.WARNING
        assert diagnostic.message == "undocumented opcode $A7 (LAX)"
        assert diagnostic.code is DiagnosticCode.HARDWARE_FAULT_RISK

    def test_unstable(self):
        stream = program(Instruction("XAA", Operand.immediate(1)))
        assert any("unstable" in m for m in messages(stream))

    def test_jam(self):
        stream = program(Instruction("JAM"))
        assert any("halts the CPU" in m for m in messages(stream))

    def test_brk(self):
        stream = program(Instruction("BRK"))
        assert "BRK jumps through the IRQ vector" in messages(stream)

    def test_illegal_pair_fatal_even_when_permissive(self):
        stream = program(Instruction("STA", Operand.immediate(1)))
        (diagnostic,) = findings(stream)
        assert diagnostic.is_fatal
        assert diagnostic.code is DiagnosticCode.ILLEGAL_ADDRESSING_MODE


# =============================================================================
# Memory Map
# =============================================================================

class TestMemoryMap:
    """Test writes against the hardware profile."""

    def test_write_to_rom(self):
        stream = program(Instruction("STA", Operand.memory(0xE000)))
        assert messages(stream) == ["write to $E000 in OS ROM"]

    def test_write_to_stack_page(self):
        stream = program(Instruction("STX", Operand.memory(0x0150)))
        assert messages(stream) == ["write to $0150 in hardware stack"]

    def test_write_to_cartridge_control(self):
        stream = program(Instruction("STA", Operand.memory(0xD500)))
        assert messages(stream) == ["write to $D500 in cartridge control"]

    def test_c000_depends_on_profile(self):
        stream = program(Instruction("STA", Operand.memory(0xC000)))
        assert messages(stream) == ["write to $C000 in OS ROM"]
        assert messages(stream, hardware=ATARI_800) == ["write to $C000 in unmapped"]

    def test_reads_of_rom_allowed(self):
        stream = program(Instruction("LDA", Operand.memory(0xE000)))
        assert findings(stream) == []

    def test_indexed_write_range(self):
        stream = program(Instruction("STA", Operand.memory(0x01F8, M.ABSOLUTE_X), index_limit=4))
        assert messages(stream)[0] == "write to $01F8 in hardware stack"

    def test_indexed_write_into_unmapped_io(self):
        stream = program(Instruction("STA", Operand.memory(0xD7F0, M.ABSOLUTE_X), index_limit=0x20))
        assert "write to $D7F0 in unmapped I/O" in messages(stream)

    def test_read_modify_write_on_io(self):
        stream = program(Instruction("INC", Operand.memory(0xD01A, symbol="COLBK"), volatile=True))
        assert messages(stream) == ["read-modify-write on I/O register COLBK writes it twice"]

    def test_read_modify_write_on_ram_allowed(self):
        stream = program(Instruction("INC", Operand.memory(0x80)))
        assert findings(stream) == []


# =============================================================================
# Stack Balance
# =============================================================================

class TestStack:
    """Test per-subroutine stack tracking."""

    def test_balanced(self):
        stream = program(Instruction("PHA"), Instruction("PLA"))
        assert findings(stream) == []

    def test_return_with_bytes_pushed(self):
        stream = program(Instruction("PHA"))
        assert messages(stream) == ["RTS with 1 byte(s) still pushed"]

    def test_pull_from_empty_frame(self):
        stream = InstructionStream([
            Label("main"),
            Instruction("JSR", Operand.to_label("sub")),
            Instruction("RTS"),
            Label("sub"),
            Instruction("PLA"),
            Instruction("RTS"),
        ], entry="main")
        (diagnostic,) = findings(stream)
        assert diagnostic.message == "PLA pulls from an empty stack frame"
        assert diagnostic.position == 4

    def test_merge_with_different_depths(self):
        stream = InstructionStream([
            Label("main"),
            Instruction("LDA", Operand.memory(0x80)),
            Instruction("BEQ", Operand.to_label("skip", M.RELATIVE)),
            Instruction("PHA"),
            Label("skip"),
            Instruction("RTS"),
        ], entry="main")
        text = messages(stream)
        assert "RTS with 1 byte(s) still pushed" in text
        assert "stack depth differs where paths merge (1 vs 0)" in text


# =============================================================================
# Addressing Hazards
# =============================================================================

class TestAddressing:
    """Test wrap and page-crossing checks."""

    def test_zero_page_indexed_without_bound(self):
        stream = program(Instruction("LDA", Operand.memory(0xF0, M.ZERO_PAGE_X)))
        assert messages(stream) == ["zero-page indexed access can wrap past $FF"]

    def test_zero_page_indexed_with_safe_bound(self):
        stream = program(Instruction("LDA", Operand.memory(0xF0, M.ZERO_PAGE_X), index_limit=16))
        assert findings(stream) == []

    def test_absolute_indexed_wrap(self):
        stream = program(Instruction("LDA", Operand.memory(0xFF80, M.ABSOLUTE_X)))
        assert "indexed access can wrap past $FFFF" in messages(stream)

    def test_known_page_crossing(self):
        stream = program(Instruction("LDA", Operand.memory(0x20F8, M.ABSOLUTE_X), index_limit=16))
        assert messages(stream) == ["indexed read crosses a page boundary; timing and dummy read vary"]

    def test_unknown_bound_on_ram_not_reported(self):
        stream = program(Instruction("LDA", Operand.memory(0x2000, M.ABSOLUTE_Y)))
        assert findings(stream) == []

    def test_unknown_bound_on_volatile_reported(self):
        stream = program(Instruction("LDA", Operand.memory(0xD200, M.ABSOLUTE_X), volatile=True))
        assert len(findings(stream)) == 1

    def test_jmp_indirect_page_bug(self):
        stream = InstructionStream([
            Label("main"),
            Instruction("JMP", Operand.memory(0x10FF, M.INDIRECT)),
        ], entry="main")
        assert messages(stream) == ["JMP ($10FF) reads its high byte from $1000"]

    def test_pointer_at_ff(self):
        stream = program(Instruction("LDA", Operand.memory(0xFF, M.INDIRECT_INDEXED)))
        assert messages(stream) == ["zero-page pointer at $FF takes its high byte from $00"]


# =============================================================================
# Flow and Severity
# =============================================================================

class TestFlow:
    """Test the fall-off check."""

    def test_fall_off_end(self):
        stream = InstructionStream([Label("main"), Instruction("LDA", Operand.immediate(1))], entry="main")
        assert messages(stream) == ["execution can run past the end of the program"]

    def test_trailing_jump_is_fine(self):
        stream = InstructionStream([
            Label("main"),
            Instruction("JMP", Operand.to_label("main")),
        ], entry="main")
        assert findings(stream) == []


class TestSeverity:
    """Test permissive vs strict mode."""

    def test_strict_promotes_to_fatal(self):
        stream = program(Instruction("STA", Operand.memory(0xE000)))
        (diagnostic,) = findings(stream, strict=True)
        assert diagnostic.is_fatal

    def test_check_raises_in_strict_mode(self):
        stream = program(Instruction("LAX", Operand.memory(0x80)))
        validator = CrashSafetyValidator(BackendConfig(nocrash=True))
        with pytest.raises(HardwareFaultRiskError, match="undocumented opcode"):
            validator.check(stream)

    def test_check_returns_warnings_when_permissive(self):
        stream = program(Instruction("LAX", Operand.memory(0x80)))
        warnings = CrashSafetyValidator(BackendConfig()).check(stream)
        assert len(warnings) == 1

    def test_check_raises_illegal_pair(self):
        stream = program(Instruction("STA", Operand.immediate(1)))
        with pytest.raises(IllegalAddressingModeError):
            CrashSafetyValidator(BackendConfig()).check(stream)

    def test_location_quotes_origin(self):
        origin = Origin(3, "store $E000, x")
        stream = program(Instruction("STA", Operand.memory(0xE000), origin))
        (diagnostic,) = findings(stream)
        assert diagnostic.location == "op 3 'store $E000, x': STA $E000"
        assert diagnostic.position == 1
