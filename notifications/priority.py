from __future__ import annotations

from typing import Dict

from models.records import Severity

_RANK: Dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


def priority_for(days_remaining: int) -> Severity:
    if days_remaining <= 0:
        return Severity.CRITICAL  # due today or overdue
    if days_remaining <= 3:
        return Severity.HIGH
    if days_remaining <= 7:
        return Severity.MEDIUM
    return Severity.LOW


def escalated(old: Severity | str, new: Severity | str) -> bool:
    return _RANK[Severity(new)] > _RANK[Severity(old)]
