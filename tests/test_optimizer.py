# =============================================================================
# test_optimizer.py - Peephole Optimizer Tests
# =============================================================================
# Tests for the 6502 code-size optimizer.
#
# The optimizer applies safe transformations to reduce code size. These
# tests verify:
#   - Individual rewrites work and respect flags, labels and volatility
#   - Optimization levels (none / default / size)
#   - Optimized programs leave the same memory behind as unoptimized ones
#   - Optimization never grows code and the size level is idempotent
#   - Seeded generated programs agree across levels
#   - Disjoint bytes share a slot when summed into a word
# =============================================================================

import random

import pytest

from atari_sdk.backend import (
    Backend,
    BackendConfig,
    Instruction,
    InstructionStream,
    Label,
    Operand,
    PeepholeOptimizer,
    optimize_stream,
)
from atari_sdk.backend.optimizer import live_flags_after
from atari_sdk.cpu import AddressingMode
from atari_sdk.emulator import run_code
from atari_sdk.ir import Address, ProgramBuilder

RELATIVE = AddressingMode.RELATIVE


def zp(address):
    return Operand.memory(address)


def imm(value):
    return Operand.immediate(value)


def ins(mnemonic, operand=None, **kwargs):
    if operand is None:
        return Instruction(mnemonic, **kwargs)
    return Instruction(mnemonic, operand, **kwargs)


def run(items, level="default", entry=None):
    stream = InstructionStream(items, entry=entry)
    optimizer = PeepholeOptimizer(BackendConfig(optimization=level))
    result = optimizer.optimize(stream)
    return [str(item) for item in result], optimizer.stats


# =============================================================================
# Control Flow Cleanup
# =============================================================================

class TestDeadCode:
    """Test removal of unreachable instructions."""

    def test_after_rts(self):
        text, stats = run([ins("RTS"), ins("LDA", imm(1)), ins("STA", zp(0x80))])
        assert text == ["RTS"]
        assert stats.dead_code == 2

    def test_label_ends_dead_region(self):
        text, _ = run([
            ins("JMP", Operand.to_label("there")),
            ins("NOP"),
            Label("there"),
            ins("RTS"),
        ])
        assert "NOP" not in text
        assert text[-1] == "RTS"


class TestLabels:
    """Test unused-label removal."""

    def test_unused_label_removed(self):
        text, stats = run([Label("orphan"), ins("RTS")])
        assert text == ["RTS"]
        assert stats.unused_labels == 1

    def test_entry_label_kept(self):
        text, _ = run([Label("main"), ins("RTS")], entry="main")
        assert text == ["main:", "RTS"]


class TestJumps:
    """Test jump-to-next and branch chains."""

    def test_jump_to_next(self):
        text, stats = run([
            ins("JMP", Operand.to_label("next")),
            Label("next"),
            ins("RTS"),
        ], entry="next")
        assert text == ["next:", "RTS"]
        assert stats.jump_to_next == 1

    def test_branch_chain_retargets(self):
        text, stats = run([
            Label("top"),
            ins("LDA", zp(0x80)),
            ins("BEQ", Operand.to_label("hop", RELATIVE)),
            ins("RTS"),
            Label("hop"),
            ins("JMP", Operand.to_label("top")),
        ], entry="top")
        assert "BEQ top" in text
        assert stats.branch_chains >= 1

    def test_jump_to_rts_becomes_rts(self):
        text, stats = run([
            Label("main"),
            ins("JMP", Operand.to_label("done")),
            Label("done"),
            ins("RTS"),
        ], entry="main")
        assert text.count("RTS") >= 1
        assert not any(t.startswith("JMP") for t in text)


# =============================================================================
# Data Flow Rewrites
# =============================================================================

class TestRedundancy:
    """Test redundant load/store removal."""

    def test_reload_removed(self):
        text, stats = run([
            ins("LDA", zp(0x80)),
            ins("STA", zp(0x81)),
            ins("LDA", zp(0x80)),
            ins("STA", zp(0x82)),
            ins("RTS"),
        ])
        assert text == ["LDA $80", "STA $81", "STA $82", "RTS"]
        assert stats.redundant_loads == 1

    def test_store_back_removed(self):
        text, stats = run([
            ins("LDA", zp(0x80)),
            ins("STA", zp(0x80)),
            ins("RTS"),
        ])
        assert text == ["LDA $80", "RTS"]
        assert stats.redundant_stores == 1

    def test_load_kept_when_flags_read(self):
        text, _ = run([
            Label("top"),
            ins("LDA", zp(0x80)),
            ins("STA", zp(0x81)),
            ins("LDA", zp(0x80)),
            ins("BNE", Operand.to_label("top", RELATIVE)),
            ins("RTS"),
        ], entry="top")
        assert text.count("LDA $80") == 2

    def test_volatile_load_kept(self):
        vcount = Operand.memory(0xD40B, symbol="VCOUNT")
        text, _ = run([
            ins("LDA", vcount, volatile=True),
            ins("STA", zp(0x80)),
            ins("LDA", vcount, volatile=True),
            ins("STA", zp(0x81)),
            ins("RTS"),
        ])
        assert text.count("LDA VCOUNT") == 2

    def test_label_resets_tracking(self):
        text, _ = run([
            ins("LDA", zp(0x80)),
            Label("join"),
            ins("LDA", zp(0x80)),
            ins("STA", zp(0x81)),
            ins("JMP", Operand.to_label("join")),
        ])
        assert text.count("LDA $80") == 2

    def test_load_becomes_transfer(self):
        text, stats = run([
            ins("LDX", zp(0x80)),
            ins("STX", zp(0x81)),
            ins("LDA", zp(0x80)),
            ins("STA", zp(0x82)),
            ins("RTS"),
        ])
        assert "TXA" in text
        assert stats.register_transfers == 1


class TestPushPull:
    """Test PHA/PLA pair elimination."""

    def test_pair_removed(self):
        text, stats = run([
            ins("LDA", zp(0x80)),
            ins("PHA"),
            ins("PLA"),
            ins("STA", zp(0x81)),
            ins("RTS"),
        ])
        assert "PHA" not in text and "PLA" not in text
        assert stats.push_pull_pairs == 1

    def test_pair_kept_when_pla_flags_used(self):
        text, _ = run([
            Label("top"),
            ins("LDA", zp(0x80)),
            ins("PHA"),
            ins("PLA"),
            ins("BNE", Operand.to_label("top", RELATIVE)),
            ins("RTS"),
        ], entry="top")
        assert "PLA" in text


class TestZeroPage:
    """Test absolute-to-zero-page shortening."""

    def test_absolute_below_100_shortened(self):
        stream = InstructionStream([
            ins("LDA", Operand.memory(0x0080, AddressingMode.ABSOLUTE)),
            ins("RTS"),
        ])
        optimizer = PeepholeOptimizer(BackendConfig())
        result = optimizer.optimize(stream)
        assert result.instructions()[0].mode is AddressingMode.ZERO_PAGE
        assert optimizer.stats.zero_page == 1

    def test_indexed_without_bound_kept(self):
        stream = InstructionStream([
            ins("LDA", Operand.memory(0x00F0, AddressingMode.ABSOLUTE_X)),
            ins("RTS"),
        ])
        result = PeepholeOptimizer(BackendConfig()).optimize(stream)
        assert result.instructions()[0].mode is AddressingMode.ABSOLUTE_X

    def test_indexed_with_safe_bound_shortened(self):
        stream = InstructionStream([
            ins("LDA", Operand.memory(0x00F0, AddressingMode.ABSOLUTE_X), index_limit=8),
            ins("RTS"),
        ])
        result = PeepholeOptimizer(BackendConfig()).optimize(stream)
        assert result.instructions()[0].mode is AddressingMode.ZERO_PAGE_X


# =============================================================================
# Flag Liveness
# =============================================================================

class TestFlagLiveness:
    """Test live_flags_after()."""

    def test_branch_reads_z(self):
        items = [ins("LDA", zp(0x80)), ins("BEQ", Operand.to_label("x", RELATIVE)), Label("x"), ins("RTS")]
        assert live_flags_after(items, 0, frozenset("NZ")) == frozenset("Z")

    def test_overwritten_flags_dead(self):
        items = [ins("LDA", zp(0x80)), ins("LDA", zp(0x81)), ins("BEQ", Operand.to_label("x", RELATIVE)),
                 Label("x"), ins("RTS")]
        assert live_flags_after(items, 0, frozenset("NZ")) == frozenset()

    def test_flags_do_not_cross_jsr(self):
        items = [ins("LDA", zp(0x80)), ins("JSR", Operand.to_label("sub")), ins("BEQ", Operand.to_label("x", RELATIVE)),
                 Label("x"), Label("sub"), ins("RTS")]
        assert live_flags_after(items, 0, frozenset("NZ")) == frozenset()


# =============================================================================
# Levels, Statistics and Equivalence
# =============================================================================

class TestLevels:
    """Test optimization levels and statistics."""

    def test_none_returns_copy(self):
        stream = InstructionStream([ins("RTS"), ins("NOP")])
        optimizer = PeepholeOptimizer(BackendConfig(optimization="none"))
        result = optimizer.optimize(stream)
        assert result is not stream
        assert [str(i) for i in result] == ["RTS", "NOP"]
        assert optimizer.stats.total_optimizations == 0

    def test_default_runs_one_pass(self, calls_program):
        result = Backend(BackendConfig(optimization="default")).compile(calls_program)
        assert result.stats.total_passes == 1

    def test_size_converges(self, calls_program):
        result = Backend(BackendConfig(optimization="size")).compile(calls_program)
        assert result.stats.converged
        assert result.stats.bytes_after <= result.stats.bytes_before

    def test_pass_bound(self, calls_program):
        config = BackendConfig(optimization="size", max_optimizer_passes=1)
        result = Backend(config).compile(calls_program)
        assert result.stats.total_passes == 1

    def test_stats_text(self):
        _, stats = optimize_stream(InstructionStream([ins("RTS"), ins("NOP")]))
        text = str(stats)
        assert "Dead code removed: 1" in text
        assert "Bytes: 2 -> 1" in text


class TestEquivalence:
    """Optimized code must leave the same memory behind."""

    @staticmethod
    def observe(program, level):
        result = Backend(BackendConfig(optimization=level)).compile(program)
        cpu, outcome = run_code(result.code, 0x2000)
        assert outcome.reason == "return"
        memory = cpu.memory
        return result, bytes(memory[0x80:0x100]) + bytes(memory[0x600:0x800]), outcome.io_writes

    @pytest.mark.parametrize("fixture", ["sum_program", "calls_program", "stripes_program"])
    @pytest.mark.parametrize("level", ["default", "size"])
    def test_same_memory(self, request, fixture, level):
        program = request.getfixturevalue(fixture)
        _, base_memory, base_io = self.observe(program, "none")
        result, memory, io = self.observe(program, level)
        assert memory == base_memory
        assert io == base_io
        assert len(result.code) <= len(self.observe(program, "none")[0].code)

    def test_sum_result(self, sum_program):
        result = Backend(BackendConfig(optimization="size")).compile(sum_program)
        cpu, _ = run_code(result.code, 0x2000)
        assert cpu.memory[0x0700] == 45

    def test_calls_result(self, calls_program):
        result = Backend(BackendConfig(optimization="size")).compile(calls_program)
        cpu, _ = run_code(result.code, 0x2000)
        assert cpu.memory[0x0701] == 15

    def test_stripes_write_hardware_in_order(self, stripes_program):
        result = Backend(BackendConfig(optimization="size")).compile(stripes_program)
        _, outcome = run_code(result.code, 0x2000)
        colbk = [value for address, value in outcome.io_writes if address == 0xD01A]
        assert colbk == [0x10 + 2 * k for k in range(8)]
        assert len([a for a, _ in outcome.io_writes if a == 0xD40A]) == 8

    def test_size_level_is_idempotent(self, calls_program):
        config = BackendConfig(optimization="size")
        stream = Backend(config).compile(calls_program).stream
        optimizer = PeepholeOptimizer(config)
        again = optimizer.optimize(stream)
        assert [str(i) for i in again] == [str(i) for i in stream]
        assert optimizer.stats.total_optimizations == 0


# =============================================================================
# Generated Programs
# =============================================================================

BYTE_NAMES = ("b0", "b1", "b2", "b3")
WORD_NAMES = ("w0", "w1")
STRAIGHT_LINE = ("move", "arith", "arith", "shift", "step", "stack", "indirect", "store")


def _source(rng, names, width):
    if rng.random() < 0.4:
        return rng.randrange(0x100 if width == 1 else 0x10000)
    return rng.choice(names)


def _straight_line(b, rng):
    names = rng.choice((BYTE_NAMES, WORD_NAMES))
    width = 1 if names is BYTE_NAMES else 2
    choice = rng.choice(STRAIGHT_LINE)
    if choice == "move":
        b.op("move", rng.choice(names), _source(rng, names, width))
    elif choice == "arith":
        kind = rng.choice(("add", "sub", "and", "or", "xor"))
        b.op(kind, rng.choice(names), rng.choice(names), _source(rng, names, width))
    elif choice == "shift":
        dst = rng.choice(names)
        b.op(rng.choice(("shl", "shr")), dst, dst, count=rng.randint(1, 3))
    elif choice == "step":
        b.op(rng.choice(("inc", "dec")), rng.choice(names))
    elif choice == "stack":
        b.op("push", rng.choice(BYTE_NAMES))
        b.op("move", rng.choice(BYTE_NAMES), rng.randrange(0x100))
        b.op("pop", rng.choice(BYTE_NAMES))
    elif choice == "indirect":
        b.op("store_indirect", "p", rng.choice(names), offset=rng.randrange(16))
    else:
        b.op("store", Address(rng.choice((0x0700, 0x0701, 0x0702, 0xD01A))), rng.choice(BYTE_NAMES))


def generated_program(seed):
    """A random branch-forward program over bytes, words and a zero-page pointer."""
    rng = random.Random(seed)
    b = ProgramBuilder(f"generated{seed}")
    for name in BYTE_NAMES:
        b.symbol(name)
    for name in WORD_NAMES:
        b.symbol(name, "word")
    b.symbol("p", "pointer")
    b.entry("main")
    for name in BYTE_NAMES:
        b.op("move", name, rng.randrange(0x100))
    for name in WORD_NAMES:
        b.op("move", name, rng.randrange(0x10000))
    b.op("move", "p", 0x0680)

    for step in range(rng.randint(6, 20)):
        if rng.random() < 0.25:
            names = rng.choice((BYTE_NAMES, WORD_NAMES))
            width = 1 if names is BYTE_NAMES else 2
            skip = f"skip{step}"
            kind = rng.choice(("branch_eq", "branch_ne", "branch_lt", "branch_ge"))
            b.op(kind, rng.choice(names), _source(rng, names, width), target=skip)
            for _ in range(rng.randint(1, 3)):
                _straight_line(b, rng)
            b.label(skip)
        else:
            _straight_line(b, rng)

    for k, name in enumerate(BYTE_NAMES):
        b.op("store", Address(0x0710 + k), name)
    b.ret()
    return b.build()


class TestGeneratedEquivalence:
    """Optimized builds of generated programs behave like unoptimized ones."""

    @staticmethod
    def observe(program, level):
        result = Backend(BackendConfig(optimization=level)).compile(program)
        cpu, outcome = run_code(result.code, 0x2000)
        assert outcome.reason == "return"
        # everything below the code, minus the stack page
        return result, cpu.snapshot()[:0x2000], outcome.io_writes

    @pytest.mark.parametrize("seed", range(200))
    @pytest.mark.parametrize("level", ["default", "size"])
    def test_same_behaviour(self, seed, level):
        program = generated_program(seed)
        base, base_memory, base_io = self.observe(program, "none")
        result, memory, io = self.observe(program, level)
        assert memory == base_memory
        assert io == base_io
        assert len(result.code) <= len(base.code)

    def test_generator_is_deterministic(self):
        assert generated_program(7) == generated_program(7)
        assert generated_program(7) != generated_program(8)


# =============================================================================
# Whole Pipeline
# =============================================================================

class TestSharedSlotAddition:
    """Two disjoint bytes summed into a word that lives throughout."""

    @staticmethod
    def program():
        b = ProgramBuilder("share_add")
        a = b.symbol("a")
        bb = b.symbol("b")
        c = b.symbol("c", "word", is_global=True)
        b.entry("main")             # 0
        b.op("move", c, 0)          # 1
        b.op("move", a, 0x70)       # 2
        b.op("add", c, c, a)        # 3
        b.op("move", bb, 0x95)      # 4
        b.op("add", c, c, bb)       # 5
        b.ret()                     # 6
        return b.build()

    @pytest.mark.parametrize("level", ["none", "default", "size"])
    def test_slots_and_result(self, level):
        result = Backend(BackendConfig(optimization=level)).compile(self.program())
        allocation = result.allocation
        assert allocation.slot("a") == allocation.slot("b")
        assert allocation.slot("a").is_zero_page
        assert allocation.slot("c").is_zero_page
        c = allocation.address("c")
        assert allocation.address("a") not in (c, c + 1)

        cpu, outcome = run_code(result.code, 0x2000)
        assert outcome.reason == "return"
        assert cpu.memory[c] | cpu.memory[c + 1] << 8 == 0x70 + 0x95

    @pytest.mark.parametrize("level", ["none", "default", "size"])
    def test_addition_uses_accumulator_and_zero_page(self, level):
        result = Backend(BackendConfig(optimization=level)).compile(self.program())
        instructions = result.stream.instructions()
        adds = [i for i in instructions if i.mnemonic == "ADC"]
        assert len(adds) == 4
        assert "CLC" in [i.mnemonic for i in instructions]
        touching = [i for i in instructions if i.operand.symbol in ("a", "b", "c")]
        assert {i.operand.symbol for i in touching} == {"a", "b", "c"}
        assert all(i.mode is AddressingMode.ZERO_PAGE for i in touching)
        low_adds = [i for i in adds if i.operand.symbol in ("a", "b")]
        assert [i.operand.symbol for i in low_adds] == ["a", "b"]
