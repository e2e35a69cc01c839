"""
Read-only views over epics-with-tasks: search and filtering, quarter
progress, timeline helpers. Nothing here touches the store.
"""
import math
from typing import Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, Field

MONTHS_PER_YEAR = 12

def task_months(task: Dict) -> Set[int]:
    """Calendar months (0-11) a task overlaps; spans past December wrap around."""
    start = math.floor(task["start_month"])
    end = math.ceil(task["start_month"] + task["duration"]) - 1
    return {month % MONTHS_PER_YEAR for month in range(start, end + 1)}

def quarter_of(month: int) -> int:
    return month // 3 + 1

def exceeds_year(start_month: float, duration: float) -> bool:
    return start_month + duration > MONTHS_PER_YEAR

def owners(tasks: Iterable[Dict]) -> List[str]:
    return sorted({task.get("owner") for task in tasks if task.get("owner")})

class TaskFilter(BaseModel):
    search: str = ""
    types: Set[str] = set()
    statuses: Set[str] = set()
    owners: Set[str] = set()
    quarter: Optional[int] = Field(None, ge=1, le=4)
    months: Set[int] = set()

    @property
    def is_empty(self) -> bool:
        return not (self.search or self.types or self.statuses or self.owners
                    or self.quarter is not None or self.months)

    def matches(self, task: Dict) -> bool:
        owner = task.get("owner") or ""
        if self.search:
            needle = self.search.lower()
            haystacks = (task.get("name") or "", task.get("description") or "", owner)
            if not any(needle in text.lower() for text in haystacks):
                return False
        if self.types and task.get("type") not in self.types:
            return False
        if self.statuses and task.get("status") not in self.statuses:
            return False
        if self.owners and owner not in self.owners:
            return False
        if self.quarter is not None or self.months:
            months = task_months(task)
            if self.quarter is not None and not any(quarter_of(m) == self.quarter for m in months):
                return False
            if self.months and not months & self.months:
                return False
        return True

    def apply(self, epics_with_tasks: List[Dict]) -> List[Dict]:
        """
        Keeps matching tasks under each epic. With an active filter, epics left
        without tasks are dropped; with an empty filter every epic stays.
        """
        result = []
        for epic in epics_with_tasks:
            kept = [task for task in epic.get("tasks") or [] if self.matches(task)]
            if kept or self.is_empty:
                result.append({**epic, "tasks": kept})
        return result

def quarter_stats(tasks: Iterable[Dict]) -> List[Dict]:
    tasks = list(tasks)
    stats = []
    for quarter in range(1, 5):
        first, last = (quarter - 1) * 3, (quarter - 1) * 3 + 2
        in_quarter = [t for t in tasks if any(first <= m <= last for m in task_months(t))]
        completed = sum(1 for t in in_quarter if t.get("status") == "done")
        stats.append({
            "quarter": quarter,
            "total": len(in_quarter),
            "completed": completed,
            "percentage": math.floor(completed / len(in_quarter) * 100 + 0.5) if in_quarter else 0,
        })
    return stats
