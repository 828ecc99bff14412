"""Running-number (lfd_nr) allocation per branch and year."""

from running_numbers.services.sequencing.allocator import SequenceAllocator
from running_numbers.services.sequencing.counter_store import CounterStore
from running_numbers.services.sequencing.drift import DriftReconciler
from running_numbers.services.sequencing.renumbering import Classification, classify, renumber
from running_numbers.services.sequencing.schemas import ItemInput, SequenceSummary
from running_numbers.services.sequencing.submission_service import SubmissionSequencingService

__all__ = [
    "Classification",
    "CounterStore",
    "DriftReconciler",
    "ItemInput",
    "SequenceAllocator",
    "SequenceSummary",
    "SubmissionSequencingService",
    "classify",
    "renumber",
]
