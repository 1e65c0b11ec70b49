from __future__ import annotations

from typing import Collection, Iterable, List, Optional


def plan_attempts(
    preferred: Optional[str],
    default: Optional[str],
    fallbacks: Iterable[str],
    usable: Collection[str],
    guaranteed: Optional[str] = None,
) -> List[str]:
    """Return the ordered, de-duplicated list of providers to try.

    Order: preferred, default, then declared fallbacks, keeping only usable
    ids. ``guaranteed`` (the offline recognition engine) is appended when it
    is not already planned, whether or not it was listed anywhere.
    """
    plan: List[str] = []

    def _place(candidate: Optional[str]) -> None:
        if candidate and candidate in usable and candidate not in plan:
            plan.append(candidate)

    _place(preferred)
    _place(default)
    for candidate in fallbacks:
        _place(candidate)
    if guaranteed and guaranteed not in plan:
        plan.append(guaranteed)
    return plan
