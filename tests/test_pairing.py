import numpy as np
import pytest

from kmerfetch.core.layout import ArchiveLayout, DataIntegrityError, LayoutInconsistency
from kmerfetch.engines.pairing import MateResolver


@pytest.fixture
def resolver():
    return MateResolver(ArchiveLayout(10, 1, 1))  # entry count 20, half 10


class TestMateResolver:
    def test_both_mates_missing(self, resolver):
        np.testing.assert_array_equal(resolver.resolve([5, 12]), [2, 15])
        assert resolver.match_count == 2
        assert resolver.read_pairs_count == 0

    def test_pair_already_present(self, resolver):
        assert resolver.resolve([5, 15]).size == 0
        assert resolver.read_pairs_count == 1

    def test_mixed(self, resolver):
        np.testing.assert_array_equal(resolver.resolve([0, 10, 3, 19]), [9, 13])
        assert resolver.match_count == 4
        assert resolver.read_pairs_count == 1

    def test_unsorted_duplicates(self, resolver):
        np.testing.assert_array_equal(resolver.resolve([12, 5, 12, 5]), [2, 15])
        assert resolver.match_count == 2

    def test_empty(self, resolver):
        assert resolver.resolve([]).size == 0

    def test_idempotent(self, resolver):
        primary = [1, 4, 14, 18]
        np.testing.assert_array_equal(resolver.resolve(primary), resolver.resolve(primary))

    def test_properties(self):
        layout = ArchiveLayout(500, 2, 0)
        resolver = MateResolver(layout)
        rng = np.random.default_rng(7)
        for _ in range(20):
            primary = np.unique(rng.integers(0, layout.entry_count, size=rng.integers(1, 300)))
            needed = resolver.resolve(primary)
            assert np.intersect1d(needed, primary).size == 0
            assert np.all(np.isin(layout.mates(needed), primary))
            assert np.all(np.diff(needed) > 0)
            # Every primary record is either paired within the set or has its mate in the needed set
            assert 2 * resolver.read_pairs_count + needed.size == primary.size

    def test_odd_layout(self):
        with pytest.raises(LayoutInconsistency):
            MateResolver(ArchiveLayout(5, 1, 0)).resolve([1])

    def test_record_outside_archive(self, resolver):
        with pytest.raises(DataIntegrityError, match="no mate"):
            resolver.resolve([3, 25])
