import hashlib

PARTITION_TAG_BYTES = 2


def make_partition(text) -> int:
    """Derives a 16-bit partition tag from a text key such as a username.

    The tag is the last two bytes of the SHA-1 digest of the key, read as a
    big-endian unsigned integer. Callers mask it to the layout's partition
    width; the generator does this on every call.

    Args:
        text (str | bytes): The shard key. Strings are encoded as UTF-8.

    Returns:
        int: A partition tag in the range 0-65535.
    """
    if isinstance(text, str):
        text = text.encode("utf-8")

    digest = hashlib.sha1(text).digest()
    return int.from_bytes(digest[-PARTITION_TAG_BYTES:], "big")
