"""Input and summary schemas for submission sequencing."""

from pydantic import BaseModel, ConfigDict, computed_field

from running_numbers.models.submission import SequencedItem


class ItemInput(BaseModel):
    """One proposed complaint position.

    sequence_number is whatever the client sent back for an existing item.
    It is kept raw here; only numbers that already belong to the submission
    are honored (see renumbering.classify).
    """

    model_config = ConfigDict(extra="ignore")

    sequence_number: int | str | None = None
    article_number: str | None = None
    ean: str | None = None
    order_quantity: float | None = None
    order_unit: str | None = None
    complaint_quantity: float | None = None
    complaint_unit: str | None = None

    def to_model(self, *, submission_id: str, partition_key: str, period: int, sequence_number: int) -> SequencedItem:
        """Build the SequencedItem row carrying its final running number."""
        return SequencedItem(
            submission_id=submission_id,
            partition_key=partition_key,
            period=period,
            sequence_number=sequence_number,
            **self.model_dump(exclude={"sequence_number"}),
        )


class SequenceSummary(BaseModel):
    """Per-submission numbering overview for list views."""

    submission_id: str
    partition_key: str
    period: int
    item_count: int
    min_sequence_number: int | None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_label(self) -> str:
        """Lowest number plus count of further items, e.g. "30+3" for four items starting at 30."""
        if self.min_sequence_number is None:
            return ""
        if self.item_count <= 1:
            return str(self.min_sequence_number)
        return f"{self.min_sequence_number}+{self.item_count - 1}"
