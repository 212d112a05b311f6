import numpy as np
import pytest

from slamtools.orb import (
    Match,
    bf_match,
    compute_orb,
    filter_good_matches,
    hamming_distance,
)

FULL = 0xFFFFFFFF


def _texture(seed=1, shape=(80, 96)):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


def _interior_keypoints():
    return [(20.0, 20.0), (30.5, 25.0), (45.0, 40.0), (60.0, 50.0), (70.0, 30.0)]


def test_uniform_image_gives_zero_descriptor():
    img = np.full((64, 64), 100, dtype=np.uint8)
    (desc,) = compute_orb(img, [(32.0, 32.0)])
    assert desc == (0,) * 8


def test_boundary_keypoints_are_none():
    img = _texture(shape=(64, 64))
    descs = compute_orb(img, [(10.0, 20.0), (20.0, 15.9), (48.0, 30.0), (47.0, 47.0)])
    assert descs[0] is None
    assert descs[1] is None
    assert descs[2] is None
    assert descs[3] is not None and len(descs[3]) == 8


def test_descriptor_words_fit_in_32_bits():
    descs = compute_orb(_texture(), _interior_keypoints())
    for desc in descs:
        assert all(0 <= w <= FULL for w in desc)


def test_descriptor_is_translation_invariant():
    img = _texture()
    shifted = np.roll(img, shift=(3, 5), axis=(0, 1))
    kps = [(30.0, 30.0), (45.0, 35.0)]
    moved = [(x + 5, y + 3) for x, y in kps]
    assert compute_orb(img, kps) == compute_orb(shifted, moved)


def test_non_2d_image_rejected():
    with pytest.raises(ValueError):
        compute_orb(np.zeros((40, 40, 3), dtype=np.uint8), [(20.0, 20.0)])


def test_hamming_distance_extremes():
    assert hamming_distance((0,) * 8, (FULL,) * 8) == 256
    assert hamming_distance((1,) + (0,) * 7, (0,) * 8) == 1
    d = (123, 456, 789, 0, 5, 6, 7, 8)
    assert hamming_distance(d, d) == 0


def test_hamming_distance_length_mismatch():
    with pytest.raises(ValueError):
        hamming_distance((0,) * 8, (0,) * 7)


def test_self_match_finds_identity():
    descs = compute_orb(_texture(), _interior_keypoints())
    matches = bf_match(descs, descs)
    assert [(m.query_idx, m.train_idx) for m in matches] == [(i, i) for i in range(5)]
    assert all(m.distance == 0 for m in matches)


def test_bf_match_threshold_and_skipping():
    zero = (0,) * 8
    forty = ((1 << 32) - 1, 0xFF) + (0,) * 6
    thirty_nine = ((1 << 32) - 1, 0x7F) + (0,) * 6
    assert hamming_distance(zero, forty) == 40
    assert bf_match([zero], [forty]) == []
    matches = bf_match([None, zero], [None, forty, thirty_nine])
    assert matches == [Match(1, 2, 39)]


def test_bf_match_prefers_earliest_on_tie():
    zero = (0,) * 8
    one = (1,) + (0,) * 7
    matches = bf_match([zero], [one, one])
    assert matches == [Match(0, 0, 1)]


def test_bf_match_custom_max_distance():
    zero = (0,) * 8
    one = (1,) + (0,) * 7
    assert bf_match([zero], [one], max_distance=1) == []


def test_filter_good_matches_floor():
    ms = [Match(0, 0, 5), Match(1, 1, 10), Match(2, 2, 31), Match(3, 3, 50)]
    assert filter_good_matches(ms) == ms[:2]


def test_filter_good_matches_twice_minimum():
    ms = [Match(0, 0, 20), Match(1, 1, 41), Match(2, 2, 40)]
    assert filter_good_matches(ms) == [ms[0], ms[2]]


def test_filter_good_matches_empty():
    assert filter_good_matches([]) == []