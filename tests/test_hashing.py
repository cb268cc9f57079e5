import pytest

from lockless.hashing import (
    hash_2words,
    hash_add,
    hash_finish,
    hash_int,
    hash_rot,
    mhash_add,
    mhash_finish,
)


@pytest.mark.parametrize("x", [0, 1, 0xDEADBEEF, 0xFFFFFFFF, 12345678])
@pytest.mark.parametrize("k", [1, 5, 13, 15, 31])
def test_rotation_round_trip(x, k):
    assert hash_rot(hash_rot(x, k), 32 - k) == x


def test_rotation_moves_low_bit_to_top():
    assert hash_rot(1, 31) == 0x80000000


def test_rotation_rejects_bad_amount():
    with pytest.raises(ValueError):
        hash_rot(1, 33)


def test_finish_maps_zero_to_zero():
    assert mhash_finish(0) == 0


def test_finish_is_injective_on_a_range():
    outputs = {mhash_finish(i) for i in range(20000)}
    assert len(outputs) == 20000


def test_add_is_injective_in_hash_for_zero_data():
    outputs = {mhash_add(h, 0) for h in range(5000)}
    assert len(outputs) == 5000


def test_hash_add_matches_mhash_add():
    for h, d in [(0, 0), (1, 2), (0xFFFFFFFF, 7), (123, 456)]:
        assert hash_add(h, d) == mhash_add(h, d)


def test_hash_int_equals_two_words():
    for x, basis in [(0, 0), (1, 99), (4096, 0xABCDEF), (0xFFFFFFFF, 1)]:
        assert hash_int(x, basis) == hash_2words(x, basis)


def test_hash_int_distinct_for_fixed_basis():
    outputs = {hash_int(x, 777) for x in range(5000)}
    assert len(outputs) == 5000


def test_results_fit_in_32_bits():
    for x in [0, 1, 2**31, 2**32 - 1, 2**40 + 5]:
        for fn in (
            lambda v: hash_int(v, v),
            lambda v: hash_finish(v, 8),
            lambda v: mhash_add(v, v),
        ):
            assert 0 <= fn(x) <= 0xFFFFFFFF


def test_hash_is_deterministic():
    assert hash_int(42, 17) == hash_int(42, 17)
    assert hash_int(42, 17) != hash_int(42, 18)