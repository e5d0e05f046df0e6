"""
Runtime Library
===============

Small routines that programs reach with `call NAME` without defining
NAME themselves. The selector appends the routines a program uses to the
end of its instruction stream.

SYNCHRO   Wait until the beam reaches the bottom of the visible screen.
          PAL reads 0 in bits 1-3 on PAL machines, which have more lines.
WAITVBL   Wait for the next vertical blank by watching the low byte of
          the real-time clock.
"""

from atari_sdk.backend.stream import Instruction, InstructionStream, Label, Origin
from atari_sdk.sdk.hardware import DEFAULT_PROFILE, HardwareProfile

RUNTIME_SOURCE = {
    "SYNCHRO": """\
SYNCHRO
        LDA PAL
        AND #$0E
        BEQ __SYN_0
        LDA #120
        JMP __SYN_1
__SYN_0 LDA #145
__SYN_1 CMP VCOUNT
        BNE __SYN_1
        RTS
""",
    "WAITVBL": """\
WAITVBL
        LDA RTCLOK+2
__VBL_0 CMP RTCLOK+2
        BEQ __VBL_0
        RTS
""",
}

RUNTIME_ROUTINES = list(RUNTIME_SOURCE)


def runtime_stream(names, profile: HardwareProfile = DEFAULT_PROFILE) -> InstructionStream:
    """
    Assemble the named runtime routines into one stream.

    The stream's equates hold the hardware registers the routines use.
    Unknown names raise KeyError.
    """
    from atari_sdk.assembler.assembler import read_stream

    stream = InstructionStream()
    for name in names:
        unit = read_stream(RUNTIME_SOURCE[name], f"<runtime {name}>", profile=profile)
        origin = Origin(-1, f"runtime {name}")
        for item in unit.stream:
            if isinstance(item, Label):
                stream.append(Label(item.name, origin))
            else:
                stream.append(Instruction(item.mnemonic, item.operand, origin,
                                          volatile=item.volatile))
        for equate, address in unit.stream.equates.items():
            stream.equates.setdefault(equate, address)
    return stream
