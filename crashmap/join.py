"""Bind merged county features to their accident counts."""

from __future__ import annotations
from typing import Dict, List, Sequence

from .models import CountyAggregate, GeoFeature, JoinedFeature

def join_counts(features: Sequence[GeoFeature], aggregates: Sequence[CountyAggregate]) -> List[JoinedFeature]:
    """Attach a count to every feature, matching names case-insensitively.

    Total over `features`: the output has one entry per input feature, in
    input order. A feature with no matching aggregate gets count 0.
    Aggregates with no feature are simply unused.
    """
    counts: Dict[str, int] = {}
    for a in aggregates:
        counts[a.key] = counts.get(a.key, 0) + a.count
    return [JoinedFeature(feature=f, count=counts.get(f.key, 0)) for f in features]
