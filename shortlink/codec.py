"""Base62 encoding of sequence values into short codes.

The alphabet order is digits, then lower case, then upper case. Changing it
would re-map every future code, so it is a fixed constant of the service.
"""

__all__ = ["BASE62_ALPHABET", "base62_encode"]

BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def base62_encode(number: int) -> str:
    """Encode a sequence value as a short code.

    Injective over non-negative integers and never shorter for a larger
    value. Sequence values start at 1, so generated codes are never empty;
    0 still encodes to ``"0"`` so the function is total.

    Raises:
        ValueError: ``number`` is negative.
    """
    if number < 0:
        raise ValueError("Number must be non-negative")

    if number == 0:
        return BASE62_ALPHABET[0]

    base = len(BASE62_ALPHABET)
    result = []

    while number > 0:
        number, remainder = divmod(number, base)
        result.append(BASE62_ALPHABET[remainder])

    return "".join(result[::-1])
