"""
Indices (precomputed lookup tables)
===================================

The record table is loaded once per session and filtered many times (once
per state selection), so we precompute a map from normalized state code to
the sorted list of record IDs in that state.

Example:
- `by_state["CA"]` gives the sorted record IDs of every California accident,
  whether the CSV spelled it "CA", "ca" or " Ca ".
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Sequence
from .models import AccidentRecord, name_key

@dataclass
class StateIndex:
    """Container of precomputed state -> record ID lists."""
    by_state: Dict[str, List[int]]

    def ids_for(self, state_code: str) -> List[int]:
        return self.by_state.get(name_key(state_code), [])

    def states(self) -> List[str]:
        return sorted(self.by_state)

def build_state_index(records: Sequence[AccidentRecord]) -> StateIndex:
    """Build the state index from the loaded dataset."""
    by_state: Dict[str, List[int]] = {}
    for pos, r in enumerate(records):
        by_state.setdefault(name_key(r.state), []).append(pos)
    for ids in by_state.values():
        ids.sort()
    return StateIndex(by_state=by_state)
