"""
AT&T Listing Importer
=====================

Imports the AT&T-syntax x86 assembly listing produced by a host compiler
(for example `rustc --emit asm` or `clang -S` of a small freestanding
routine) as an IntermediateProgram. This is the bridge that lets a host
toolchain act as the front-end: the x86 code is treated as a three-address
program over a handful of "virtual registers".

Mapping
-------
    %eax, %ax, %al ...   word symbol "eax" (likewise ecx, edx, ebx, esi, edi)
    $42                  Const(42)
    54282                Address(54282), a fixed memory location
    (%ecx), 4(%ecx)      indirect through the register, with offset
    (%edx,%ecx)          indirect through edx+ecx (summed into a pointer temp)
    .LBB0_1              label "LBB0_1"

    mov/movz  src, dst   move, load, store or indirect access
    xor %r, %r           move r, #0
    add/sub/and/or/xor   dst := dst op src
    inc/dec, shl/shr     in place
    cmp a, b + jcc       compare-and-branch (unsigned conditions only)
    test a, a + je/jne   branch_zero / branch_nonzero
    add/dec/shl + je     branch_zero / branch_nonzero on the result
    cmovCC src, dst      conditional move over a skip label
    jmp/call/ret         jump/call/return
    push/pop             push/pop

Directives are ignored except `.globl NAME`, which turns the matching label
into the program entry point.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from atari_sdk.errors import IRSyntaxError, SourceLocation
from atari_sdk.ir.model import (
    Address,
    Const,
    IntermediateProgram,
    OpKind,
    Operation,
    Ref,
    SizeClass,
    Symbol,
    Value,
)

logger = logging.getLogger(__name__)

# x86 register name -> register family (symbol name)
REGISTER_FAMILIES: dict[str, str] = {}
for _family, _aliases in {
    "eax": ("rax", "eax", "ax", "al", "ah"),
    "ebx": ("rbx", "ebx", "bx", "bl", "bh"),
    "ecx": ("rcx", "ecx", "cx", "cl", "ch"),
    "edx": ("rdx", "edx", "dx", "dl", "dh"),
    "esi": ("rsi", "esi", "si", "sil"),
    "edi": ("rdi", "edi", "di", "dil"),
}.items():
    for _alias in _aliases:
        REGISTER_FAMILIES[_alias] = _family

POINTER_TEMP = "att_ptr"

_SIZE_SUFFIXES = ("b", "w", "l", "q")

# Condition code -> (branch kind, operands swapped)
_CONDITIONS = {
    "e": (OpKind.BRANCH_EQ, False),
    "z": (OpKind.BRANCH_EQ, False),
    "ne": (OpKind.BRANCH_NE, False),
    "nz": (OpKind.BRANCH_NE, False),
    "b": (OpKind.BRANCH_LT, False),
    "c": (OpKind.BRANCH_LT, False),
    "nae": (OpKind.BRANCH_LT, False),
    "ae": (OpKind.BRANCH_GE, False),
    "nb": (OpKind.BRANCH_GE, False),
    "nc": (OpKind.BRANCH_GE, False),
    "a": (OpKind.BRANCH_LT, True),
    "nbe": (OpKind.BRANCH_LT, True),
    "be": (OpKind.BRANCH_GE, True),
    "na": (OpKind.BRANCH_GE, True),
}

_NEGATED = {
    OpKind.BRANCH_EQ: OpKind.BRANCH_NE,
    OpKind.BRANCH_NE: OpKind.BRANCH_EQ,
    OpKind.BRANCH_LT: OpKind.BRANCH_GE,
    OpKind.BRANCH_GE: OpKind.BRANCH_LT,
    OpKind.BRANCH_ZERO: OpKind.BRANCH_NONZERO,
    OpKind.BRANCH_NONZERO: OpKind.BRANCH_ZERO,
}

_SIGNED_CONDITIONS = frozenset({"l", "le", "g", "ge", "nl", "nle", "ng", "nge", "s", "ns", "o", "no"})

_ARITHMETIC = {
    "add": OpKind.ADD,
    "sub": OpKind.SUB,
    "and": OpKind.AND,
    "or": OpKind.OR,
    "xor": OpKind.XOR,
}

_MEMORY = re.compile(
    r"^(?P<disp>-?(?:0x[0-9a-fA-F]+|\d+))?\((?P<base>%\w+)?(?:,(?P<index>%\w+))?\)$"
)


class _Indirect:
    """Memory operand through a register (optionally summed with another)."""

    def __init__(self, base: Optional[str], index: Optional[str], offset: int):
        self.base = base
        self.index = index
        self.offset = offset


def _sanitize_label(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", name.lstrip("."))


def _strip_suffix(mnemonic: str, stems) -> Optional[str]:
    """Return the stem if mnemonic is stem or stem + size suffix."""
    for stem in stems:
        if mnemonic == stem:
            return stem
        if mnemonic[:-1] == stem and mnemonic[-1] in _SIZE_SUFFIXES:
            return stem
    return None


class AttImporter:
    """
    Translates an AT&T x86 listing into an IntermediateProgram.

    Usage:
        program = AttImporter("output.asm").read(text)
    """

    def __init__(self, filename: str = "<input>"):
        self.filename = filename
        self._symbols: dict[str, Symbol] = {}
        self._operations: list[Operation] = []
        self._globals: set[str] = set()
        # ("cmp", left, right) or ("test", value, mnemonic) for the last flag setter
        self._compare: Optional[tuple] = None
        self._skip_counter = 0
        self._line = ""
        self._line_number = 0

    def read(self, text: str) -> IntermediateProgram:
        lines = text.splitlines()
        # Pre-scan so a .globl after its label still marks the entry point
        for raw in lines:
            stripped = raw.split("#", 1)[0].strip()
            if stripped.startswith((".globl", ".global")):
                for name in stripped.split(None, 1)[1:]:
                    self._globals.add(_sanitize_label(name.strip()))

        for line_number, raw in enumerate(lines, start=1):
            self._line = raw
            self._line_number = line_number
            self._translate_line(raw)

        name = Path(self.filename).stem if self.filename != "<input>" else "program"
        program = IntermediateProgram(tuple(self._symbols.values()), tuple(self._operations), name)
        logger.info("imported %s: %d operations", self.filename, len(program.operations))
        return program

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @property
    def _location(self) -> SourceLocation:
        column = len(self._line) - len(self._line.lstrip()) + 1
        return SourceLocation(self.filename, self._line_number, column)

    def _error(self, message: str, hint: Optional[str] = None) -> IRSyntaxError:
        return IRSyntaxError(message, location=self._location, hint=hint, source_line=self._line)

    def _emit(self, kind: OpKind, *operands, target: Optional[str] = None,
              count: Optional[int] = None, offset: int = 0) -> None:
        self._operations.append(Operation(
            kind, tuple(operands), target=target, count=count, offset=offset,
            location=self._location,
        ))

    def _register(self, name: str) -> Ref:
        family = REGISTER_FAMILIES.get(name.lstrip("%").lower())
        if family is None:
            raise self._error(f"unsupported register '{name}'")
        if family not in self._symbols:
            self._symbols[family] = Symbol(family, SizeClass.WORD, location=self._location)
        return Ref(family)

    def _pointer_temp(self) -> Ref:
        if POINTER_TEMP not in self._symbols:
            self._symbols[POINTER_TEMP] = Symbol(POINTER_TEMP, SizeClass.POINTER)
        return Ref(POINTER_TEMP)

    def _next_skip_label(self) -> str:
        self._skip_counter += 1
        return f"att_skip_{self._skip_counter}"

    @staticmethod
    def _split_operands(text: str) -> list[str]:
        parts, depth, current = [], 0, []
        for ch in text:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            if ch == "," and depth == 0:
                parts.append("".join(current).strip())
                current = []
            else:
                current.append(ch)
        if current:
            parts.append("".join(current).strip())
        return [p for p in parts if p]

    def _operand(self, text: str) -> Union[Value, _Indirect]:
        if text.startswith("%"):
            return self._register(text)
        if text.startswith("$"):
            try:
                return Const(int(text[1:], 0))
            except ValueError:
                raise self._error(f"malformed immediate '{text}'") from None
        match = _MEMORY.match(text)
        if match:
            offset = int(match.group("disp"), 0) if match.group("disp") else 0
            base = match.group("base")
            if base is None:
                return Address(offset & 0xFFFF)
            return _Indirect(base, match.group("index"), offset)
        try:
            return Address(int(text, 0) & 0xFFFF)
        except ValueError:
            raise self._error(f"malformed operand '{text}'") from None

    def _pointer_for(self, operand: _Indirect) -> tuple[Ref, int]:
        """Return (pointer symbol, offset) addressing an indirect operand."""
        base = self._register(operand.base)
        if operand.index is None:
            if not 0 <= operand.offset <= 0xFF:
                raise self._error(f"displacement {operand.offset} out of range 0..255")
            return base, operand.offset
        pointer = self._pointer_temp()
        self._emit(OpKind.ADD, pointer, base, self._register(operand.index))
        if not 0 <= operand.offset <= 0xFF:
            raise self._error(f"displacement {operand.offset} out of range 0..255")
        return pointer, operand.offset

    def _move(self, src, dst) -> None:
        if isinstance(dst, Const):
            raise self._error("cannot move into an immediate")
        if isinstance(src, _Indirect) and isinstance(dst, _Indirect):
            raise self._error("memory-to-memory moves are not supported")
        if isinstance(src, _Indirect):
            pointer, offset = self._pointer_for(src)
            self._emit(OpKind.LOAD_INDIRECT, dst, pointer, offset=offset)
        elif isinstance(dst, _Indirect):
            pointer, offset = self._pointer_for(dst)
            self._emit(OpKind.STORE_INDIRECT, pointer, src, offset=offset)
        elif isinstance(src, Address):
            self._emit(OpKind.LOAD, dst, src)
        elif isinstance(dst, Address):
            self._emit(OpKind.STORE, dst, src)
        else:
            self._emit(OpKind.MOVE, dst, src)

    def _value(self, operand) -> Value:
        if isinstance(operand, _Indirect):
            raise self._error("memory operand not supported here", hint="load it into a register first")
        return operand

    def _branch(self, condition: str, target: str, negate: bool = False) -> None:
        if condition in _SIGNED_CONDITIONS:
            raise self._error(
                f"signed condition 'j{condition}' is not supported",
                hint="the 6502 backend only compares unsigned values",
            )
        if self._compare is None:
            raise self._error(f"conditional jump 'j{condition}' without a preceding cmp or test")
        if condition not in _CONDITIONS:
            raise self._error(f"unknown condition '{condition}'")

        kind, swapped = _CONDITIONS[condition]
        if self._compare[0] == "test":
            if kind not in (OpKind.BRANCH_EQ, OpKind.BRANCH_NE):
                raise self._error(
                    f"condition '{condition}' after '{self._compare[2]}' is not supported",
                    hint="only the zero flag of a result is tracked",
                )
            kind = OpKind.BRANCH_ZERO if kind is OpKind.BRANCH_EQ else OpKind.BRANCH_NONZERO
            operands = (self._compare[1],)
        else:
            left, right = self._compare[1], self._compare[2]
            operands = (right, left) if swapped else (left, right)
        if negate:
            kind = _NEGATED[kind]
        self._emit(kind, *operands, target=target)

    # -------------------------------------------------------------------------
    # Translation
    # -------------------------------------------------------------------------

    def _translate_line(self, raw: str) -> None:
        line = raw.split("#", 1)[0].strip()
        if not line:
            return

        if line.endswith(":"):
            name = _sanitize_label(line[:-1])
            kind = OpKind.ENTRY if name in self._globals and not self._has_entry() else OpKind.LABEL
            self._emit(kind, target=name)
            return

        if line.startswith("."):
            # Assembler directive
            return

        mnemonic, _, rest = line.partition(" ")
        mnemonic = mnemonic.lower()
        args = self._split_operands(rest.strip())

        if mnemonic in ("nop", "endbr64", "endbr32"):
            return
        if _strip_suffix(mnemonic, ("ret",)):
            self._emit(OpKind.RETURN)
            return
        if _strip_suffix(mnemonic, ("call",)):
            self._expect(args, 1, mnemonic)
            self._emit(OpKind.CALL, target=_sanitize_label(args[0]))
            return
        if _strip_suffix(mnemonic, ("jmp",)):
            self._expect(args, 1, mnemonic)
            self._emit(OpKind.JUMP, target=_sanitize_label(args[0]))
            return
        if mnemonic.startswith("j"):
            self._expect(args, 1, mnemonic)
            self._branch(mnemonic[1:], _sanitize_label(args[0]))
            return
        if mnemonic.startswith("cmov"):
            self._expect(args, 2, mnemonic)
            condition = mnemonic[4:]
            if condition[-1:] in _SIZE_SUFFIXES and condition[:-1] in _CONDITIONS:
                condition = condition[:-1]
            skip = self._next_skip_label()
            self._branch(condition, skip, negate=True)
            self._move(self._operand(args[0]), self._operand(args[1]))
            self._emit(OpKind.LABEL, target=skip)
            return

        operands = [self._operand(a) for a in args]

        if mnemonic.startswith("movz") or _strip_suffix(mnemonic, ("mov",)):
            self._expect(args, 2, mnemonic)
            self._move(operands[0], operands[1])
            return

        stem = _strip_suffix(mnemonic, tuple(_ARITHMETIC))
        if stem:
            self._expect(args, 2, mnemonic)
            src, dst = self._value(operands[0]), self._value(operands[1])
            if isinstance(dst, Const):
                raise self._error(f"'{mnemonic}' cannot write an immediate")
            if stem == "xor" and src == dst:
                self._emit(OpKind.MOVE, dst, Const(0))
            else:
                self._emit(_ARITHMETIC[stem], dst, dst, src)
            self._compare = ("test", dst, mnemonic)
            return

        stem = _strip_suffix(mnemonic, ("inc", "dec", "push", "pop"))
        if stem:
            self._expect(args, 1, mnemonic)
            value = self._value(operands[0])
            kind = {"inc": OpKind.INC, "dec": OpKind.DEC, "push": OpKind.PUSH, "pop": OpKind.POP}[stem]
            if kind is not OpKind.PUSH and isinstance(value, Const):
                raise self._error(f"'{mnemonic}' cannot write an immediate")
            self._emit(kind, value)
            if kind in (OpKind.INC, OpKind.DEC):
                self._compare = ("test", value, mnemonic)
            return

        stem = _strip_suffix(mnemonic, ("shl", "sal", "shr"))
        if stem:
            kind = OpKind.SHR if stem == "shr" else OpKind.SHL
            if len(operands) == 1:
                count, dst = 1, self._value(operands[0])
            else:
                self._expect(args, 2, mnemonic)
                if not isinstance(operands[0], Const):
                    raise self._error("shift count must be an immediate")
                count, dst = operands[0].value, self._value(operands[1])
            self._emit(kind, dst, dst, count=count)
            if count:
                self._compare = ("test", dst, mnemonic)
            return

        stem = _strip_suffix(mnemonic, ("cmp", "test"))
        if stem:
            self._expect(args, 2, mnemonic)
            a, b = self._value(operands[0]), self._value(operands[1])
            if stem == "test":
                if a != b:
                    raise self._error("only 'test r, r' is supported")
                self._compare = ("test", a, mnemonic)
            else:
                # AT&T operand order: cmp a, b compares b against a
                self._compare = ("cmp", b, a)
            return

        raise self._error(f"unsupported instruction '{mnemonic}'")

    def _has_entry(self) -> bool:
        return any(op.kind is OpKind.ENTRY for op in self._operations)

    def _expect(self, args: list[str], count: int, mnemonic: str) -> None:
        if len(args) != count:
            raise self._error(f"'{mnemonic}' expects {count} operand(s), got {len(args)}")


def import_att(text: str, filename: str = "<input>") -> IntermediateProgram:
    """Translate an AT&T listing into an IntermediateProgram."""
    return AttImporter(filename).read(text)


def import_att_file(path: Union[str, Path]) -> IntermediateProgram:
    path = Path(path)
    return AttImporter(str(path)).read(path.read_text(encoding="utf-8"))
