"""Three-party oblivious permutation of table rows.

The sender holds the rows, the programmer holds the permutation and the
receiver learns the permuted rows masked by the programmer's share.
Row ``k`` of the sender's input ends up in destination row ``perm[k]``;
entries equal to ``EMPTY`` drop their row.
"""

from __future__ import annotations

from typing import Iterable, List, MutableSequence, Sequence

from .channel import Channel, OutputType
from .sharegen import Prng

STEP = 1 << 14
EMPTY = -1
_U32_EMPTY = 0xFFFFFFFF

_ZERO_BLOCK = bytes(16)
_ONE_BLOCK = (1).to_bytes(8, "little") + bytes(8)


def _xor(a: bytes, b: bytes) -> bytes:
    if len(a) != len(b):
        raise ValueError("operands differ in length")
    n = len(a)
    return (int.from_bytes(a, "little") ^ int.from_bytes(b, "little")).to_bytes(n, "little")


def _row_width(rows: Sequence[bytes]) -> int:
    if not rows:
        return 0
    width = len(rows[0])
    if any(len(r) != width for r in rows):
        raise ValueError("all rows must have the same width")
    return width


def _normalise_perm(perm: Iterable[int]) -> List[int]:
    return [EMPTY if p in (EMPTY, _U32_EMPTY) else p for p in perm]


def _store(row: bytearray, piece: bytes, output_type: OutputType) -> None:
    if output_type is OutputType.OVERWRITE:
        row[:] = piece
    else:
        row[:] = _xor(bytes(row), piece)


def permute_send(program_chl: Channel, recvr_chl: Channel, src: Sequence[bytes], tag: str = "") -> None:
    """Shuffle ``src`` with the shared permutation stream, mask it and send it to the receiver."""
    rows = [bytearray(r) for r in src]
    _row_width(rows)
    shuffle = Prng(_ZERO_BLOCK)
    mask = Prng(_ONE_BLOCK)

    n = len(rows)
    i = 0
    while i < n:
        start = i
        for _ in range(min(n - i, STEP)):
            idx = shuffle.get_u32() % (n - i) + i
            rows[i], rows[idx] = rows[idx], rows[i]
            i += 1
        chunk = b"".join(rows[start:i])
        recvr_chl.send(_xor(chunk, mask.get_bytes(len(chunk))))


def permute_recv(
    program_chl: Channel,
    sendr_chl: Channel,
    dest: Sequence[MutableSequence[int]],
    src_rows: int,
    tag: str = "",
    output_type: OutputType = OutputType.OVERWRITE,
) -> None:
    """Receive masked rows and their destinations, writing them into ``dest``."""
    if src_rows < 0:
        raise ValueError("src_rows must not be negative")
    stride = _row_width(dest)
    chunks = (src_rows + STEP - 1) // STEP

    for _ in range(chunks):
        data = sendr_chl.recv()
        perm = _normalise_perm(program_chl.recv())
        if len(perm) * stride != len(data):
            raise ValueError("received data does not match the permutation size")
        for j, target in enumerate(perm):
            if target == EMPTY:
                continue
            _store(dest[target], data[j * stride:(j + 1) * stride], output_type)


def permute_program(
    recvr_chl: Channel,
    sendr_chl: Channel,
    perm: Iterable[int],
    prng: Prng,
    dest: Sequence[MutableSequence[int]],
    tag: str = "",
    output_type: OutputType = OutputType.OVERWRITE,
) -> None:
    """Send the shuffled permutation to the receiver and write the mask share into ``dest``."""
    perm = _normalise_perm(perm)
    stride = _row_width(dest)
    shuffle = Prng(_ZERO_BLOCK)
    mask = Prng(_ONE_BLOCK)

    n = len(perm)
    i = 0
    while i < n:
        start = i
        for _ in range(min(n - i, STEP)):
            idx = shuffle.get_u32() % (n - i) + i
            perm[i], perm[idx] = perm[idx], perm[i]
            i += 1
        recvr_chl.send(perm[start:i])

    for target in perm:
        pad = mask.get_bytes(stride)
        if target == EMPTY:
            continue
        _store(dest[target], pad, output_type)