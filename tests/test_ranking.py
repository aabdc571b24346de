import numpy as np
import pytest

from sumprod.ranking import rank_descending, top_members


def test_rank_descending_largest_is_rank_one():
    ranks = rank_descending([0.5, 3.0, 1.0])
    assert ranks.tolist() == [3.0, 1.0, 2.0]


def test_rank_descending_averages_ties():
    ranks = rank_descending([2.0, 5.0, 2.0, 1.0, 5.0])
    assert ranks.tolist() == [3.5, 1.5, 3.5, 5.0, 1.5]


def test_rank_descending_returns_new_array():
    vals = np.array([1.0, 2.0])
    ranks = rank_descending(vals)
    assert ranks is not vals
    assert vals.tolist() == [1.0, 2.0]


def test_top_members_nested_and_sized():
    rng = np.random.default_rng(3)
    vals = rng.lognormal(size=1000)
    all_members = set(top_members(vals, 1.0).tolist())
    top10 = top_members(vals, 0.10)
    top1 = top_members(vals, 0.01)
    assert len(all_members) == 1000
    assert top10.size == 100
    assert top1.size == 10
    assert set(top1.tolist()) <= set(top10.tolist()) <= all_members
    assert vals[top10].min() >= np.sort(vals)[-100]


def test_top_members_rejects_bad_fraction():
    with pytest.raises(ValueError):
        top_members([1.0, 2.0], 0.0)
