from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class CreateId(BaseModel):
    """Request model for generating a new id.

    Args:
        partition (Optional[int]): Explicit partition tag, masked to the layout width.
        key (Optional[str]): Shard key hashed into a partition tag.
    """

    partition: Optional[int] = Field(
        None,
        ge=0,
        description="Partition tag; high bits beyond the layout width are dropped",
        examples=[42],
    )
    key: Optional[str] = Field(
        None,
        min_length=1,
        description="Shard key (e.g. a username) hashed into a partition tag",
        examples=["test"],
    )

    @model_validator(mode="after")
    def validate_partition_source(self):
        """Allow either an explicit partition or a key, not both."""
        if self.partition is not None and self.key is not None:
            raise ValueError("Provide either partition or key, not both.")
        return self


class CreateIdBatch(CreateId):
    """Request model for generating several ids for the same partition.

    Args:
        count (int): Number of ids to generate.
        partition (Optional[int]): Explicit partition tag.
        key (Optional[str]): Shard key hashed into a partition tag.
    """

    count: int = Field(
        ...,
        ge=1,
        description="Number of ids to generate",
        examples=[10],
    )


class GeneratedId(BaseModel):
    id: int
    hex: str
    partition: int


class GeneratedIdBatch(BaseModel):
    ids: list[int]
    partition: int


class DecodedId(BaseModel):
    """The fields of an id read back with a given layout.

    Args:
        id (int): The packed value.
        millis (int): Absolute Unix milliseconds.
        raw_millis (int): Milliseconds since the layout epoch.
        sequence (int): Per-millisecond counter.
        partition (int): Partition tag.
        checksum (Optional[int]): Check nibble, None when the layout has none.
        valid (Optional[bool]): Checksum verification, None when the layout has none.
        generated_at (Optional[datetime]): UTC instant, None when out of range.
    """

    id: int
    millis: int
    raw_millis: int
    sequence: int
    partition: int
    checksum: Optional[int] = None
    valid: Optional[bool] = None
    generated_at: Optional[datetime] = None


class VerifiedId(BaseModel):
    id: int
    valid: bool


class PartitionTag(BaseModel):
    key: str
    partition: int


class LayoutInfo(BaseModel):
    epoch: int
    time_bits: int
    sequence_bits: int
    partition_bits: int
    checksum_bits: int
    sequence_mask: int
    partition_mask: int
    checksum_mask: int
    time_shift: int
    sequence_shift: int
    partition_shift: int
    summary: str
