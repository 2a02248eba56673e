import io

import pytest

from oblivdb.lowmc import (
    LowMC,
    invert_matrix,
    load_matrix,
    multiply_gf2,
    rank_of_matrix,
    write_matrix,
)

SMALL = dict(num_boxes=2, block_size=8, key_size=8, rounds=3)


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_encrypt_decrypt_round_trip():
    cipher = LowMC(True, 0x5A, **SMALL)
    for message in range(256):
        assert cipher.decrypt(cipher.encrypt(message)) == message


def test_encryption_is_a_permutation():
    cipher = LowMC(True, 0x33, **SMALL)
    assert sorted(cipher.encrypt(m) for m in range(256)) == list(range(256))


def test_deterministic_across_instances():
    a = LowMC(False, 7, **SMALL)
    b = LowMC(False, 7, **SMALL)
    assert [a.encrypt(m) for m in range(16)] == [b.encrypt(m) for m in range(16)]


def test_decrypt_without_inverse_raises():
    cipher = LowMC(False, 1, **SMALL)
    with pytest.raises(ValueError):
        cipher.decrypt(3)


def test_sbox_table_from_source():
    cipher = LowMC(False, 0, num_boxes=1, block_size=3, key_size=3, rounds=1)
    assert [cipher.substitution(v) for v in range(8)] == [0, 1, 3, 6, 7, 4, 5, 2]


def test_substitution_inverse():
    cipher = LowMC(False, 0, **SMALL)
    for v in range(256):
        assert cipher.inv_substitution(cipher.substitution(v)) == v


def test_substitution_keeps_identity_part():
    cipher = LowMC(False, 0, **SMALL)
    for v in range(256):
        assert cipher.substitution(v) >> 6 == v >> 6


def test_set_key_changes_round_keys():
    cipher = LowMC(True, 0, **SMALL)
    assert len(cipher.round_keys) == SMALL["rounds"] + 1
    assert all(k == 0 for k in cipher.round_keys)
    cipher.set_key(0xFF)
    other = LowMC(True, 0xFF, **SMALL)
    assert cipher.round_keys == other.round_keys
    assert cipher.encrypt(9) == other.encrypt(9)


def test_key_too_wide_raises():
    with pytest.raises(ValueError):
        LowMC(False, 1 << 8, **SMALL)


def test_message_too_wide_raises():
    cipher = LowMC(False, 0, **SMALL)
    with pytest.raises(ValueError):
        cipher.encrypt(256)


def test_too_many_boxes_raises():
    with pytest.raises(ValueError):
        LowMC(False, 0, num_boxes=3, block_size=8, key_size=8, rounds=1)


def test_generated_matrices_have_full_rank():
    cipher = LowMC(True, 0, **SMALL)
    for mat in cipher.lin_matrices:
        assert rank_of_matrix(mat, 8) == 8
    for mat in cipher.key_matrices:
        assert rank_of_matrix(mat, 8) >= 8


def test_multiply_identity():
    identity = [1 << i for i in range(8)]
    for v in range(256):
        assert multiply_gf2(identity, v) == v


def test_rank_cases():
    assert rank_of_matrix([1 << i for i in range(5)], 5) == 5
    assert rank_of_matrix([0, 0, 0], 3) == 0
    assert rank_of_matrix([0b011, 0b011, 0b110], 3) == 2


def test_invert_matrix_round_trip():
    cipher = LowMC(True, 0, **SMALL)
    mat = cipher.lin_matrices[0]
    inv = invert_matrix(mat, 8)
    for v in range(256):
        assert multiply_gf2(inv, multiply_gf2(mat, v)) == v


def test_write_matrix_format():
    out = io.StringIO()
    write_matrix(out, [0b01, 0b10], 2)
    assert out.getvalue() == "10\n01\n"


def test_load_write_round_trip():
    mat = [0b1011, 0b0110, 0b1111, 0b0001]
    out = io.StringIO()
    write_matrix(out, mat, 4)
    assert load_matrix(io.StringIO(out.getvalue()), 4, 4) == mat


def test_load_bad_character_raises():
    with pytest.raises(ValueError):
        load_matrix(io.StringIO("1x\n01\n"), 2, 2)


def test_load_missing_newline_raises():
    with pytest.raises(ValueError):
        load_matrix(io.StringIO("1001"), 2, 2)


def test_linear_matrix_loaded_from_file(_isolated_cwd):
    identity = [1 << i for i in range(8)]
    with open(_isolated_cwd / "linMtx_0.txt", "w", newline="") as f:
        write_matrix(f, identity, 8)
    cipher = LowMC(True, 0x12, **SMALL)
    assert cipher.lin_matrices[0] == identity
    assert cipher.inv_lin_matrices[0] == identity
    assert cipher.decrypt(cipher.encrypt(77)) == 77


def test_singular_matrix_file_raises(_isolated_cwd):
    with open(_isolated_cwd / "linMtx_0.txt", "w", newline="") as f:
        write_matrix(f, [0] * 8, 8)
    with pytest.raises(ValueError):
        LowMC(True, 0, **SMALL)