"""Three-party oblivious switching network built on oblivious permutations.

The sender holds a table of rows, the programmer holds a program that maps
source rows to destination rows (one source may feed several destinations)
and the helper assists.  Afterwards the sender and the programmer hold XOR
shares of the destination table.
"""

from __future__ import annotations

from typing import List, MutableSequence, NamedTuple, Sequence

from .channel import Channel, OutputType
from .permutation import EMPTY, permute_program, permute_recv, permute_send
from .sharegen import Prng

_CHOICE_SEED = 345345
_PAD_SEED = 645687456


class SwitchNetError(RuntimeError):
    """Raised when the parties of a switching network disagree or a program is invalid."""


class SrcDest(NamedTuple):
    src: int
    dest: int


def _xor(*parts: bytes) -> bytes:
    size = len(parts[0])
    acc = 0
    for part in parts:
        if len(part) != size:
            raise ValueError("operands differ in length")
        acc ^= int.from_bytes(part, "little")
    return acc.to_bytes(size, "little")


def _width(rows: Sequence[bytes]) -> int:
    if not rows:
        return 0
    width = len(rows[0])
    if any(len(r) != width for r in rows):
        raise ValueError("all rows must have the same width")
    return width


def _bit(bits: bytes, k: int) -> int:
    return bits[k >> 3] >> (k & 7) & 1


def _choice_bits(rows: int) -> bytearray:
    return bytearray(Prng(_CHOICE_SEED).get_bytes((rows + 6) // 8))


def _handshake(chl: Channel, expected: str) -> None:
    chl.send(expected)
    actual = chl.recv()
    if actual != expected:
        raise SwitchNetError(f"handshake mismatch: expected {expected!r}, got {actual!r}")


class Program:
    """The programmer's description of which source row goes to which destination row."""

    def __init__(self, src_size: int, dest_size: int):
        if src_size < 0 or dest_size < 0:
            raise ValueError("sizes must not be negative")
        self.src_size = src_size
        self.dest_size = dest_size
        self.src_dests: List[SrcDest] = []
        self.counts: List[int] = [0] * src_size
        self.next_free_idx = 0
        self.next_free_node_idx = 0

    def add_switch(self, src_idx: int, dest_idx: int) -> None:
        if not 0 <= src_idx < len(self.counts):
            raise ValueError(f"source index {src_idx} is out of range")
        if dest_idx < 0:
            raise ValueError("destination index must not be negative")
        self.src_dests.append(SrcDest(src_idx, dest_idx))
        self.counts[src_idx] += 1

    def finalize(self) -> None:
        """Sort the switches by source index in place, with a counting sort."""
        if not self.counts:
            return
        counts, self.counts = self.counts, []
        total = 0
        for k, count in enumerate(counts):
            counts[k] = total
            total += count

        items = self.src_dests
        for i in range(len(items) - 1, -1, -1):
            j = counts[items[i].src]
            while j < i:
                counts[items[i].src] += 1
                items[i], items[j] = items[j], items[i]
                j = counts[items[i].src]

    def reset(self) -> None:
        self.next_free_idx = 0
        self.next_free_node_idx = 0

    def next_free(self) -> int:
        """The next source index that no switch reads from."""
        items = self.src_dests
        while (
            self.next_free_node_idx < len(items)
            and self.next_free_idx == items[self.next_free_node_idx].src
        ):
            while (
                self.next_free_node_idx < len(items)
                and self.next_free_idx == items[self.next_free_node_idx].src
            ):
                self.next_free_node_idx += 1
            self.next_free_idx += 1
        free = self.next_free_idx
        self.next_free_idx += 1
        return free

    def validate(self) -> None:
        for prev, cur in zip(self.src_dests, self.src_dests[1:]):
            if cur.src < prev.src:
                raise SwitchNetError("switches are not sorted by source index")


class OblvSwitchNet:
    """The three roles of the switching network; ``tag`` labels its transfers."""

    def __init__(self, tag: str):
        self.tag = tag

    def send_recv(
        self,
        program_chl: Channel,
        help_chl: Channel,
        src: Sequence[bytes],
        dest: Sequence[MutableSequence[int]],
    ) -> None:
        """Sender role: feed ``src`` in and receive a share of the result into ``dest``."""
        src_rows = [bytes(r) for r in src]
        dest_rows = len(dest)
        dest_cols = _width(dest)
        cols = _width(src_rows) if src_rows else dest_cols
        _handshake(program_chl, f"send_{len(src_rows)}_{dest_rows}_{cols}")

        if len(src_rows) < dest_rows:
            src_rows.extend(bytes(cols) for _ in range(dest_rows - len(src_rows)))

        self.send_select(program_chl, help_chl, src_rows)
        self.help_duplicate(program_chl, dest_rows, dest_cols)
        permute_recv(program_chl, help_chl, dest, dest_rows, self.tag + "_sendRecv_final")

    def help(
        self,
        program_chl: Channel,
        sendr_chl: Channel,
        prng: Prng,
        dest_rows: int,
        src_rows: int,
        nbytes: int,
    ) -> None:
        """Helper role."""
        _handshake(program_chl, f"help_{dest_rows}_{nbytes}")
        temp = [bytearray(nbytes) for _ in range(dest_rows)]
        self.recv_select(program_chl, sendr_chl, temp, src_rows)
        self.send_duplicate(program_chl, prng, temp)
        permute_send(program_chl, sendr_chl, temp, self.tag + "_help_final")

    def program(
        self,
        help_chl: Channel,
        sendr_chl: Channel,
        prog: Program,
        prng: Prng,
        dest: Sequence[MutableSequence[int]],
        output_type: OutputType = OutputType.OVERWRITE,
    ) -> None:
        """Programmer role: run ``prog`` and receive a share of the result into ``dest``."""
        rows = len(dest)
        cols = _width(dest)
        _handshake(sendr_chl, f"send_{prog.src_size}_{rows}_{cols}")
        _handshake(help_chl, f"help_{rows}_{cols}")

        temp = [bytearray(cols) for _ in range(rows)]
        self.program_select(help_chl, sendr_chl, prog, prng, temp)
        self.program_duplicate(help_chl, sendr_chl, prog, prng, temp)

        perm = [sd.dest for sd in prog.src_dests]
        for row, target in zip(temp, perm):
            if output_type is OutputType.OVERWRITE:
                dest[target][:] = row
            else:
                dest[target][:] = _xor(bytes(dest[target]), row)

        permute_program(
            sendr_chl, help_chl, perm, prng, dest, self.tag + "_prog_final", OutputType.ADDITIVE
        )

    def send_select(self, program_chl: Channel, help_chl: Channel, src: Sequence[bytes]) -> None:
        permute_send(program_chl, help_chl, src, self.tag + "_send_select")

    def recv_select(
        self,
        program_chl: Channel,
        sendr_chl: Channel,
        dest: Sequence[MutableSequence[int]],
        src_rows: int,
    ) -> None:
        permute_recv(program_chl, sendr_chl, dest, src_rows, self.tag + "_recv_select")

    def program_select(
        self,
        recvr_chl: Channel,
        sendr_chl: Channel,
        prog: Program,
        prng: Prng,
        dest: Sequence[MutableSequence[int]],
    ) -> None:
        """Move the first row of each source group into place; duplicates get unused rows."""
        if prog.counts:
            prog.finalize()
        prog.validate()
        prog.reset()

        items = prog.src_dests
        size = max(len(items), prog.src_size)
        perm1 = [EMPTY] * size
        idx = 0
        while idx < len(items):
            perm1[items[idx].src] = idx
            idx += 1
            while idx < len(items) and items[idx - 1].src == items[idx].src:
                free = prog.next_free()
                if free >= size:
                    raise SwitchNetError("no free source row left for a duplicate")
                perm1[free] = idx
                idx += 1

        permute_program(recvr_chl, sendr_chl, perm1, prng, dest, self.tag + "_prog_select")

    def send_duplicate(
        self, program_chl: Channel, prng: Prng, src: Sequence[MutableSequence[int]]
    ) -> None:
        """Offer, for each row, its own value or the previous row's, re-randomising the share."""
        rows = len(src)
        stride = _width(src)
        pairs = max(rows - 1, 0)
        pads = Prng(_PAD_SEED).get_bytes(pairs * stride * 2)
        bits = program_chl.recv()

        messages = []
        for i in range(1, rows):
            p = _bit(bits, i - 1)
            first = bytes(src[i - p])
            second = bytes(src[i - (1 - p)])
            fresh = prng.get_bytes(stride)
            base = 2 * (i - 1) * stride
            messages.append(_xor(pads[base:base + stride], first, fresh))
            messages.append(_xor(pads[base + stride:base + 2 * stride], second, fresh))
            src[i][:] = fresh

        program_chl.send(b"".join(messages))

    def help_duplicate(self, program_chl: Channel, rows: int, nbytes: int) -> None:
        """Send the programmer the pad it chose for each row."""
        pads = Prng(_PAD_SEED)
        bits = _choice_bits(rows)
        share = []
        for i in range(1, rows):
            first = pads.get_bytes(nbytes)
            second = pads.get_bytes(nbytes)
            share.append(second if _bit(bits, i - 1) else first)
        program_chl.send(b"".join(share))

    def program_duplicate(
        self,
        sendr_chl: Channel,
        helper_chl: Channel,
        prog: Program,
        prng: Prng,
        dest: Sequence[MutableSequence[int]],
    ) -> None:
        """Make each duplicate row of the program a copy of the row before it."""
        rows = len(dest)
        stride = _width(dest)
        if rows > 1 and len(prog.src_dests) < rows:
            raise SwitchNetError("program has fewer switches than destination rows")

        dups = [prog.src_dests[i - 1].src == prog.src_dests[i].src for i in range(1, rows)]
        bits = _choice_bits(rows)
        for k, dup in enumerate(dups):
            if dup:
                bits[k >> 3] ^= 1 << (k & 7)
        sendr_chl.send(bytes(bits))

        share0 = helper_chl.recv()
        share1 = sendr_chl.recv()
        expected = max(rows - 1, 0) * stride
        if len(share0) != expected:
            raise SwitchNetError("pad share has the wrong size")
        if len(share1) != 2 * expected:
            raise SwitchNetError("duplicate messages have the wrong size")

        for i in range(1, rows):
            dup = dups[i - 1]
            choice = _bit(bits, i - 1) ^ dup
            if dup:
                dest[i][:] = dest[i - 1]
            pad = share0[(i - 1) * stride:i * stride]
            offset = (2 * (i - 1) + choice) * stride
            message = share1[offset:offset + stride]
            dest[i][:] = _xor(bytes(dest[i]), pad, message)