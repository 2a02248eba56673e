# oblivdb

Building blocks for three-party secure database queries, kept in pure
Python on top of `cryptography` (for AES).

## Modules

### `oblivdb.sharegen`

- `Prng(seed, buffer_size=256)` — an AES counter-mode generator. The seed is
  a 16-byte block or an integer that fits in 64 bits (placed in the low half,
  little endian). It offers `get_bytes(count)`, `get_u32()`, `get_bool()`,
  `get_block()` and `buffer_span(max_bytes)`, which hands out up to
  `max_bytes` of what is currently buffered.
- `ShareGen(prev_seed, next_seed, buffer_size=256)` — derives correlated
  randomness from the seeds a party shares with its two neighbours:
  `get_share()` (an additive share of zero), `get_binary_share()` (an XOR
  share of zero), `get_rand_int_share()` and `get_rand_binary_share()`
  (replicated shares of a random value, as a pair of signed 64-bit integers).
  `refill_buffer()` regenerates the internal buffers.

### `oblivdb.lowmc`

- `LowMC(invertible, key=0, num_boxes=49, block_size=256, key_size=80,
  rounds=12)` — the LowMC block cipher. Blocks and keys are integers; bit `i`
  of the integer is bit `i` of the block. Methods: `encrypt`, `decrypt`
  (only when built with `invertible=True`, otherwise `ValueError`),
  `set_key`, `substitution` and `inv_substitution`.
  Matrices and round constants come from a zero-seeded `Prng`, so every
  instance with the same parameters uses the same ones. In invertible mode
  the cipher first looks for `linMtx_<r>.txt` and `keyMtx_<r>.txt` in the
  working directory and uses them if present (raising `ValueError` if one
  lacks full rank).
- GF(2) matrix helpers, with a matrix held as a list of row integers:
  `multiply_gf2(matrix, vector)`, `rank_of_matrix(matrix, size)`,
  `invert_matrix(matrix, size)`, and `load_matrix(stream, rows, cols)` /
  `write_matrix(stream, matrix, cols)` for the text format of one line of
  `0`/`1` characters per row.

### `oblivdb.table`

- Column types: `TypeID` (`INT`, `STRING`), `IntType`, `StringType` (bit
  count must be a multiple of 8).
- `Table(rows, columns)` with `Column` entries built from
  `(name, type_id, bit_count)` tuples; `SharedTable` of `SharedColumn`s, each
  holding two shares as rows of 64-bit words. `SharedColumn.resize(rows,
  bit_count)` keeps what fits and zero-fills the rest. `shared_table["name"]`
  returns a `ColRef` and raises `KeyError` for an unknown name.
- `SelectQuery` describes a join: `join_on(left, right)` must come first,
  then `add_input`, `add_output`, `no_reveal` and `add_op`. The returned
  `SelectBundle`s combine with `|`, `&`, `<`, `~`, `*` and `+`, each adding a
  gate to the query. Misuse raises `QueryError`.

### `oblivdb.channel`

- `channel_pair()` returns two connected in-process `Channel` ends.
  `send(obj)` stores a deep copy and never blocks; `recv()` waits up to
  `timeout` seconds (30 by default, `None` for no limit) and then raises
  `TimeoutError`. `pending` gives the number of waiting messages.
- `OutputType.OVERWRITE` / `OutputType.ADDITIVE` choose whether results
  replace a destination row or are XORed into it.

### `oblivdb.permutation`

Three roles of an oblivious permutation of byte rows: `permute_send`
(holds the rows), `permute_program` (holds the permutation, where `EMPTY`
drops a row, and receives a mask share) and `permute_recv` (receives the
masked, permuted rows). Data are sent in chunks of `STEP` rows.

### `oblivdb.switchnet`

`OblvSwitchNet(tag)` with the roles `send_recv` (sender), `program`
(programmer) and `help` (helper), and the steps they are made of. A
`Program(src_size, dest_size)` records `add_switch(src_idx, dest_idx)`
mappings, where one source row may feed several destinations. Afterwards
the sender and the programmer hold XOR shares of the destination rows.
Disagreements between parties raise `SwitchNetError`.

## Example

```python
from oblivdb.lowmc import LowMC

cipher = LowMC(True, 0x1234, 10, 64, 64, 4)
ciphertext = cipher.encrypt(0xDEADBEEF)
assert cipher.decrypt(ciphertext) == 0xDEADBEEF
```

The protocol roles are meant to run concurrently, one per thread, connected
by the channels from `channel_pair()`.

## What it does not do

- There is no binary-circuit evaluator and no query executor: a
  `SelectQuery` only describes a join, nothing here runs it on shared tables.
- Channels are in-process queues; there is no network transport.
- The shuffle and mask streams in `oblivdb.permutation`, and the choice and
  pad streams in `oblivdb.switchnet`, come from fixed seeds. The routines
  show the data flow of the protocols but give no secrecy as they stand.
- There is no command-line tool.

## Installation

```
pip install .
```

Tests use pytest:

```
pip install ".[test]"
pytest
```