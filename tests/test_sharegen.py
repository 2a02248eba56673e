import pytest

from oblivdb.sharegen import Prng, ShareGen

SEEDS = [bytes([i + 1]) * 16 for i in range(3)]
MASK = (1 << 64) - 1


def make_parties(buffer_size=256):
    return [ShareGen(SEEDS[(i + 2) % 3], SEEDS[i], buffer_size) for i in range(3)]


def test_prng_matches_aes_zero_vector():
    assert Prng(bytes(16)).get_block() == bytes.fromhex("66e94bd4ef8a2c3b884cfa59ca342b2e")


def test_prng_deterministic_and_seed_dependent():
    a = Prng(SEEDS[0]).get_bytes(100)
    b = Prng(SEEDS[0]).get_bytes(100)
    c = Prng(SEEDS[1]).get_bytes(100)
    assert a == b
    assert a != c
    assert len(a) == 100


def test_prng_stream_independent_of_chunking_and_buffer_size():
    whole = Prng(SEEDS[0], 1).get_bytes(200)
    p = Prng(SEEDS[0], 3)
    pieces = b"".join(p.get_bytes(n) for n in (1, 7, 16, 40, 136))
    assert pieces == whole


def test_prng_integer_seed_equals_low_half_block():
    assert Prng(5).get_bytes(32) == Prng(bytes([5]) + bytes(15)).get_bytes(32)


def test_buffer_span_bounded_by_buffer():
    p = Prng(SEEDS[0], 1)
    first = p.buffer_span(10)
    second = p.buffer_span(100)
    assert len(first) == 10
    assert len(second) == 6
    assert first + second == Prng(SEEDS[0], 1).get_bytes(16)
    assert p.buffer_span(0) == b""


def test_get_u32_and_bool_use_stream():
    raw = Prng(SEEDS[2]).get_bytes(5)
    p = Prng(SEEDS[2])
    assert p.get_u32() == int.from_bytes(raw[:4], "little")
    assert p.get_bool() == bool(raw[4] & 1)


def test_bad_seed_and_sizes_rejected():
    with pytest.raises(ValueError):
        Prng(b"short")
    with pytest.raises(ValueError):
        Prng(SEEDS[0], 0)
    with pytest.raises(ValueError):
        ShareGen(SEEDS[0], SEEDS[1], 0)
    with pytest.raises(ValueError):
        Prng(SEEDS[0]).get_bytes(-1)


@pytest.mark.parametrize("buffer_size", [1, 2, 256])
def test_additive_shares_sum_to_zero(buffer_size):
    parties = make_parties(buffer_size)
    for _ in range(50):
        total = sum(p.get_share() for p in parties)
        assert total & MASK == 0


@pytest.mark.parametrize("buffer_size", [1, 256])
def test_binary_shares_xor_to_zero(buffer_size):
    parties = make_parties(buffer_size)
    for _ in range(50):
        a, b, c = (p.get_binary_share() & MASK for p in parties)
        assert a ^ b ^ c == 0


def test_random_shares_are_replicated():
    parties = make_parties(1)
    for _ in range(20):
        shares = [p.get_rand_int_share() for p in parties]
        for i in range(3):
            assert shares[i][1] == shares[(i + 2) % 3][0]
        assert len({s[0] for s in shares}) == 3


def test_random_binary_share_same_stream_as_int_share():
    a = make_parties()[0]
    b = make_parties()[0]
    assert [a.get_rand_binary_share() for _ in range(5)] == [b.get_rand_int_share() for _ in range(5)]


def test_shares_fit_signed_64_bits():
    gen = make_parties()[1]
    for _ in range(100):
        value = gen.get_share()
        assert -(1 << 63) <= value < (1 << 63)


def test_common_prng_identical_across_parties():
    parties = make_parties()
    blocks = {p.common.get_block() for p in parties}
    assert len(blocks) == 1


def test_refill_resets_index_and_changes_stream():
    gen = make_parties(1)[0]
    first = gen.get_rand_int_share()
    gen.refill_buffer()
    again = gen.get_rand_int_share()
    assert first != again