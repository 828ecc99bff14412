"""Database models."""

from sqlmodel import SQLModel

from running_numbers.models.sequence_counter import SequenceCounter
from running_numbers.models.submission import SequencedItem, Submission

__all__ = [
    "SQLModel",
    "SequenceCounter",
    "SequencedItem",
    "Submission",
]
