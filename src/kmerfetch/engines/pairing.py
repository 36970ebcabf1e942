"""
Mate-pair resolution over the implicit paired-read layout of an archive.
"""
import logging

import numpy as np

from kmerfetch.core.layout import ArchiveLayout, LayoutInconsistency

logger = logging.getLogger(__name__)


# Classes --------------------------------------------------------------------------------------------------------------
class MateResolver:
    """
    Finds the mates that must be extracted in addition to a primary set of records.

    A mate already in the primary set is covered (the read was found from both ends)
    and is counted once in `read_pairs_count`; every other mate goes to the needed set.

    Examples:
        >>> resolver = MateResolver(ArchiveLayout(10, 1, 1))
        >>> resolver.resolve([5, 12])
        array([ 2, 15])
        >>> resolver.resolve([5, 15])
        array([], dtype=int64)
    """
    __slots__ = ('layout', 'match_count', 'read_pairs_count')

    def __init__(self, layout: ArchiveLayout):
        self.layout = layout
        self.match_count = 0
        self.read_pairs_count = 0

    def __repr__(self): return f'{self.__class__.__name__}({self.layout})'

    def resolve(self, primary) -> np.ndarray:
        """
        Computes the needed set for a primary set of record numbers.

        Args:
            primary: Record numbers already selected for extraction; sorted and deduplicated here
                if they are not already.

        Returns:
            Sorted record numbers whose mates are in the primary set but which are not themselves in it.

        Raises:
            LayoutInconsistency: If the layout has an odd or zero entry count, or a record is its own mate.
            DataIntegrityError: If a record number lies outside the archive.
        """
        primary = np.unique(np.asarray(primary, dtype=np.int64))
        mates = self.layout.mates(primary)
        if np.any(self_paired := mates == primary):
            raise LayoutInconsistency(f'Record {primary[self_paired][0]} is its own mate under {self.layout}')
        # Presence lookup over the primary set; mates of distinct records are distinct
        present = np.isin(mates, primary, assume_unique=True)
        needed = np.sort(mates[~present])
        self.match_count = len(primary)
        self.read_pairs_count = int(np.count_nonzero(present)) // 2
        logger.info('%d matched reads, %d found as both ends of a pair, %d mates to extract',
                    self.match_count, self.read_pairs_count, len(needed))
        return needed
