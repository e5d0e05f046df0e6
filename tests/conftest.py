"""
Shared fixtures for the Atari SDK test suite.
"""

import pytest

from atari_sdk.backend import BackendConfig
from atari_sdk.ir import read_program


SUM_LOOP = """\
program sum
symbol i byte
symbol total word
entry main
    move i, #0
    move total, #0
loop:
    add total, total, i
    inc i
    branch_ne i, #10, loop
    store $0700, total
    return
"""

CALLS = """\
program calls
symbol n byte
symbol acc byte
entry main
    move n, #3
    move acc, #0
again:
    call bump
    dec n
    branch_nonzero n, again
    push acc
    pop acc
    store $0701, acc
    return
bump:
    add acc, acc, #5
    return
"""

STRIPES = """\
program stripes
symbol color byte
symbol count byte
entry main
    move color, #$10
    move count, #8
line:
    store $D40A, color      ; WSYNC
    store $D01A, color      ; COLBK
    add color, color, #2
    dec count
    branch_nonzero count, line
    return
"""


@pytest.fixture
def config():
    return BackendConfig()


@pytest.fixture
def strict_config():
    return BackendConfig(nocrash=True)


@pytest.fixture
def sum_program():
    return read_program(SUM_LOOP, "sum.a8ir")


@pytest.fixture
def calls_program():
    return read_program(CALLS, "calls.a8ir")


@pytest.fixture
def stripes_program():
    return read_program(STRIPES, "stripes.a8ir")


@pytest.fixture
def sum_source():
    return SUM_LOOP


@pytest.fixture
def stripes_source():
    return STRIPES
