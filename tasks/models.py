"""
tasks/models.py -- Domain dataclass for the task list.

A pure data container with zero logic. Ownership enforcement lives in the
access guard; persistence lives in tasks/store.py.

user_id is the ownership relation: only that user or an admin may read or
modify the task.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Task:
    """A to-do item owned by exactly one user.

    id is None before the record is written to the database.
    """

    user_id: int
    title: str
    description: str = ""
    completed: bool = False
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
