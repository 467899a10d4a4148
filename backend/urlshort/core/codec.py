import string

from .exceptions import FormatError


# Base62 alphabet: digits, then uppercase, then lowercase
BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
BASE = len(BASE62_ALPHABET)
_CHAR_VALUES = {char: value for value, char in enumerate(BASE62_ALPHABET)}

# Codes live in a 31-bit space
ID_BITS = 31
ID_LIMIT = 1 << ID_BITS
ID_MASK = ID_LIMIT - 1

# Mixing constants. Changing any of these invalidates every issued code.
XOR_MASK = 0x5D2A8F93
MIX_PRIME = 1580030173
MIX_PRIME_INVERSE = 59260789  # MIX_PRIME * MIX_PRIME_INVERSE == 1 (mod 2**31)


def obfuscate_id(record_id: int) -> int:
    """
    Scramble an id so that sequential ids map to unrelated values.

    XOR with a fixed mask followed by multiplication by an odd constant
    modulo 2**31. Both steps are invertible, so the whole map is a
    bijection on [0, 2**31).
    """
    return ((record_id ^ XOR_MASK) * MIX_PRIME) & ID_MASK


def deobfuscate_id(value: int) -> int:
    """Reverse obfuscate_id."""
    return ((value * MIX_PRIME_INVERSE) & ID_MASK) ^ XOR_MASK


def encode_base62(num: int) -> str:
    """
    Convert a non-negative integer to a base62 string.

    Args:
        num: The integer to encode

    Returns:
        Encoded string, most significant digit first ("0" for zero)
    """
    if num < 0:
        raise ValueError("Cannot encode a negative number")
    if num == 0:
        return BASE62_ALPHABET[0]

    digits = []
    while num > 0:
        num, remainder = divmod(num, BASE)
        digits.append(BASE62_ALPHABET[remainder])

    return "".join(reversed(digits))


def decode_base62(encoded: str) -> int:
    """
    Convert a base62 string back to an integer.

    Raises:
        FormatError: If the string is empty or has characters outside the alphabet
    """
    if not encoded:
        raise FormatError("Short code cannot be empty")

    num = 0
    for char in encoded:
        value = _CHAR_VALUES.get(char)
        if value is None:
            raise FormatError(f"Invalid character in short code: {char!r}")
        num = num * BASE + value

    return num


def generate_short_code(record_id: int) -> str:
    """Derive the public short code for a record id."""
    if not 0 <= record_id < ID_LIMIT:
        raise ValueError(f"Record id {record_id} is outside the supported range")

    return encode_base62(obfuscate_id(record_id))


def parse_short_code(short_code: str) -> int:
    """
    Recover the record id from a short code.

    Pure function, no database access. The result is only meaningful for
    codes produced by generate_short_code; whether a record exists is the
    store's concern.

    Raises:
        FormatError: If the code is malformed or could never have been issued
    """
    value = decode_base62(short_code)
    if value >= ID_LIMIT:
        raise FormatError("Short code is out of range")

    return deobfuscate_id(value)
