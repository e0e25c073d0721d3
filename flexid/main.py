"""
FastAPI FlexId Service

An HTTP front end for the FlexId generator. It hands out compact, sortable,
partition-tagged 64-bit ids and decodes or verifies ids issued earlier.

Key Features:
    - Single and batch id generation for an explicit partition or a shard key
    - Decoding of ids into timestamp, sequence, partition and checksum fields
    - Luhn mod 16 verification of hand-entered ids
    - Partition derivation from text keys (SHA-1 based)

Architecture:
    - FastAPI for the web framework and automatic API documentation
    - pydantic-settings for environment configuration of the bit layout
    - One FlexIdGenerator per process; run one process per partition or
      give each process its own partition tag to keep ids unique
    - Structured logging for monitoring and debugging
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Path, status

from flexid.core.config import settings
from flexid.core.exceptions import ClockRangeError, SequenceOverflowError
from flexid.core.layout import BitLayout
from flexid.core.schema import (
    CreateId,
    CreateIdBatch,
    DecodedId,
    GeneratedId,
    GeneratedIdBatch,
    LayoutInfo,
    PartitionTag,
    VerifiedId,
)
from flexid.services.logger import setup_logger
from flexid.utils.checksum import verify_checksum
from flexid.utils.partition import make_partition
from flexid.utils.snowflake import FlexIdGenerator

logger = setup_logger()

MAX_ID = 1 << 64

# Initialize FlexId generator
layout = BitLayout.from_settings(settings)
flexid_generator = FlexIdGenerator(layout)


def get_generator() -> FlexIdGenerator:
    return flexid_generator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Logs the active layout when the service starts and stops."""
    logger.info("Starting FlexId service (env=%s)", settings.ENV)
    flexid_generator.log_layout()

    yield

    logger.info("FlexId service is shutting down.")


app = FastAPI(lifespan=lifespan)


def check_id_range(value: int):
    """Rejects values that cannot be a 64-bit id."""
    if value >= MAX_ID:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Ids are at most 64 bits wide",
        )


def resolve_partition(request: CreateId) -> int:
    """Picks the partition tag for a request: hashed key, explicit value or default."""
    if request.key is not None:
        return make_partition(request.key)
    if request.partition is not None:
        return request.partition
    return settings.DEFAULT_PARTITION


@app.post(
    "/ids",
    status_code=status.HTTP_201_CREATED,
    response_model=GeneratedId,
    summary="Generate an id",
    description="""
    Generate a new id for a partition.

    The partition is taken from the `key` field (hashed with SHA-1 into a
    16-bit tag), the `partition` field, or the service default, in that order.
    Tags wider than the layout's partition field keep only their low bits.

    If the current millisecond's sequence is exhausted the service waits up to
    MAX_WAIT_MS for the clock to advance before giving up with 503.
    """,
    responses={
        503: {
            "description": "No id could be generated",
            "content": {
                "application/json": {
                    "example": {"detail": "Sequence exhausted, retry shortly"}
                }
            },
        },
    },
)
def create_id(
    request: CreateId,
    generator: FlexIdGenerator = Depends(get_generator),
):
    """Generate a single id.

    Args:
        request (CreateId): The partition or shard key to embed.
        generator (FlexIdGenerator): The process-wide generator.

    Returns:
        GeneratedId: The id in decimal and hexadecimal, with the embedded partition.
    """
    partition = resolve_partition(request)
    try:
        value = generator.generate_blocking(partition, settings.MAX_WAIT_MS)
    except SequenceOverflowError as e:
        logger.error("Id generation failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sequence exhausted, retry shortly",
        )
    except ClockRangeError as e:
        logger.error("Id generation failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="System clock is outside the id time range",
        )

    return GeneratedId(
        id=value,
        hex=f"{value:016x}",
        partition=generator.extract_partition(value),
    )


@app.post(
    "/ids/batch",
    status_code=status.HTTP_201_CREATED,
    response_model=GeneratedIdBatch,
    summary="Generate ids in batch",
    description="""
    Generate several ids for the same partition in one request.

    Ids are returned in generation order, which is also ascending numeric
    order as long as the system clock does not move backward.
    """,
)
def create_ids(
    request: CreateIdBatch,
    generator: FlexIdGenerator = Depends(get_generator),
):
    """Generate a batch of ids.

    Args:
        request (CreateIdBatch): The number of ids and the partition or key.
        generator (FlexIdGenerator): The process-wide generator.

    Returns:
        GeneratedIdBatch: The ids and the embedded partition.
    """
    if request.count > settings.MAX_BATCH_SIZE:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"At most {settings.MAX_BATCH_SIZE} ids per batch",
        )

    partition = resolve_partition(request)
    try:
        ids = generator.generate_many(partition, request.count, settings.MAX_WAIT_MS)
    except SequenceOverflowError as e:
        logger.error("Batch id generation failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sequence exhausted, retry shortly",
        )
    except ClockRangeError as e:
        logger.error("Batch id generation failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="System clock is outside the id time range",
        )

    return GeneratedIdBatch(
        ids=ids,
        partition=partition & generator.layout.partition_mask,
    )


@app.get(
    "/ids/{value}",
    response_model=DecodedId,
    summary="Decode an id",
)
async def get_id(
    value: int = Path(
        ...,
        ge=0,
        description="The id to decode",
        examples=[123456789012345678],
    ),
    generator: FlexIdGenerator = Depends(get_generator),
):
    """Decode an id with the service's layout.

    Any 64-bit value decodes; an id from a differently configured generator
    yields meaningless fields rather than an error.
    """
    check_id_range(value)
    return generator.decode(value)


@app.get(
    "/ids/{value}/verify",
    response_model=VerifiedId,
    summary="Verify an id's checksum",
)
async def verify_id(
    value: int = Path(..., ge=0, description="The id to verify"),
    generator: FlexIdGenerator = Depends(get_generator),
):
    """Check the Luhn mod 16 digit of an id.

    Raises:
        HTTPException: 400 if the layout has no checksum field.
    """
    check_id_range(value)
    if not generator.layout.checksum_bits:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Checksums are disabled for this layout",
        )
    return VerifiedId(id=value, valid=verify_checksum(value))


@app.get(
    "/partitions/{key}",
    response_model=PartitionTag,
    summary="Derive a partition tag from a key",
)
async def get_partition(key: str = Path(..., description="The shard key")):
    return PartitionTag(key=key, partition=make_partition(key))


@app.get("/layout", response_model=LayoutInfo, summary="Describe the id layout")
async def get_layout(generator: FlexIdGenerator = Depends(get_generator)):
    current = generator.layout
    return LayoutInfo(
        epoch=current.epoch,
        time_bits=current.time_bits,
        sequence_bits=current.sequence_bits,
        partition_bits=current.partition_bits,
        checksum_bits=current.checksum_bits,
        sequence_mask=current.sequence_mask,
        partition_mask=current.partition_mask,
        checksum_mask=current.checksum_mask,
        time_shift=current.time_shift,
        sequence_shift=current.sequence_shift,
        partition_shift=current.partition_shift,
        summary=current.describe(),
    )
