from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class RatingSummary:
    entity_id: str
    mean: float
    count: int


def recompute(entity_id: str, ratings: Iterable[Optional[int]]) -> RatingSummary:
    """Unweighted mean and count over a snapshot of booking ratings.

    Missing ratings are skipped. An empty snapshot yields a mean of 0.0.
    """
    values = [int(rating) for rating in ratings if rating is not None]
    if not values:
        return RatingSummary(entity_id=entity_id, mean=0.0, count=0)
    return RatingSummary(entity_id=entity_id, mean=sum(values) / len(values), count=len(values))
