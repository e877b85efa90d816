from collections.abc import Iterable

import numpy as np

from greeter import config
from greeter.errors import NoReferenceDataError
from greeter.models import MatchResult, ReferenceSet


def _row_distances(mat: np.ndarray, query: np.ndarray) -> np.ndarray:
    diff = mat.astype(np.float64) - query.astype(np.float64)
    return np.sqrt(np.einsum("ij,ij->i", diff, diff))


class FrameMatcher:
    """
    Nearest-identity lookup over a fixed ReferenceSet.

    All reference descriptors are stacked once into an (N, D) matrix, so a
    frame only pays for the distance computation. Rows keep ReferenceSet
    order, which makes ``np.argmin`` resolve exact ties in favour of the
    identity listed first.
    """

    def __init__(self, reference_set: ReferenceSet, threshold: float | None = None):
        if not reference_set:
            raise NoReferenceDataError("cannot match against an empty reference set")
        self.reference_set = reference_set
        self.threshold = float(config.MATCH_THRESHOLD if threshold is None else threshold)

        self._labels: list[str] = list(reference_set)
        rows = []
        starts = []
        for label in self._labels:
            starts.append(len(rows))
            rows.extend(reference_set[label])
        self._mat = np.stack(rows).astype(np.float32)  # (N, D)
        self._starts = np.asarray(starts, dtype=np.intp)

    @property
    def descriptor_size(self) -> int:
        return int(self._mat.shape[1])

    def distances(self, descriptor: np.ndarray) -> dict[str, float]:
        """Per-identity distance: the closest of that identity's references."""
        query = np.asarray(descriptor, dtype=np.float32).reshape(-1)
        if query.size != self.descriptor_size:
            raise ValueError(f"descriptor has length {query.size}, expected {self.descriptor_size}")
        per_row = _row_distances(self._mat, query)
        per_label = np.minimum.reduceat(per_row, self._starts)
        return dict(zip(self._labels, per_label.tolist()))

    def match(self, descriptor: np.ndarray) -> MatchResult:
        per_label = self.distances(descriptor)
        dists = np.fromiter(per_label.values(), dtype=np.float64, count=len(per_label))
        best = int(np.argmin(dists))
        best_dist = float(dists[best])
        if best_dist > self.threshold:
            return MatchResult(label=config.UNKNOWN_LABEL, distance=best_dist)
        return MatchResult(label=self._labels[best], distance=best_dist)

    def match_all(self, descriptors: Iterable[np.ndarray]) -> list[MatchResult]:
        return [self.match(d) for d in descriptors]
