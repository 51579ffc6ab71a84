"""Identity codec: internal sequence numbers <-> external string ids.

Sequence numbers are non-negative 64-bit integers handed out in order by
the store.  They are scrambled with an invertible affine map modulo 2**64
before being written out in a fixed-width positional encoding, so
neighbouring numbers produce unrelated-looking ids while decoding stays
exact.
"""

from __future__ import annotations

import string

from inkwell.errors import InvalidIdError

DEFAULT_ALPHABET = string.digits + string.ascii_lowercase

MAX_SEQUENCE = 2**63 - 1

_MODULUS = 2**64
_MULTIPLIER = 0x9E3779B97F4A7C15  # odd, so invertible mod 2**64
_INVERSE = pow(_MULTIPLIER, -1, _MODULUS)
_OFFSET = 0x5DEECE66D


class IdCodec:
    """Deterministic, lossless mapping between int64 sequences and ids.

    The alphabet must be unique ASCII letters and digits (ids double as
    file names).  Lowercase-only alphabets keep ids safe on
    case-insensitive file systems.
    """

    def __init__(self, alphabet: str = DEFAULT_ALPHABET) -> None:
        if len(alphabet) < 16:
            raise ValueError("id alphabet needs at least 16 characters")
        if len(set(alphabet)) != len(alphabet):
            raise ValueError("id alphabet contains duplicate characters")
        allowed = set(string.ascii_letters + string.digits)
        if not set(alphabet) <= allowed:
            raise ValueError("id alphabet may only contain ASCII letters and digits")

        self.alphabet = alphabet
        self._base = len(alphabet)
        self._positions = {char: pos for pos, char in enumerate(alphabet)}
        width = 1
        while self._base**width < _MODULUS:
            width += 1
        self.width = width

    def encode(self, sequence: int) -> str:
        """Encode a sequence number as an external id."""
        if isinstance(sequence, bool) or not isinstance(sequence, int):
            raise TypeError(f"sequence must be an int, got {type(sequence).__name__}")
        if sequence < 0 or sequence > MAX_SEQUENCE:
            raise ValueError(f"sequence {sequence} is outside the int64 range")

        value = (sequence * _MULTIPLIER + _OFFSET) % _MODULUS
        chars: list[str] = []
        for _ in range(self.width):
            value, digit = divmod(value, self._base)
            chars.append(self.alphabet[digit])
        return "".join(reversed(chars))

    def decode(self, value: str) -> int:
        """Decode an external id.

        Raises:
            InvalidIdError: If the id was not produced by this codec.
        """
        if not isinstance(value, str):
            raise InvalidIdError(value, "not a string")
        if len(value) != self.width:
            raise InvalidIdError(value, f"expected {self.width} characters")

        scrambled = 0
        for char in value:
            digit = self._positions.get(char)
            if digit is None:
                raise InvalidIdError(value, f"unexpected character {char!r}")
            scrambled = scrambled * self._base + digit
        if scrambled >= _MODULUS:
            raise InvalidIdError(value, "out of range")

        sequence = ((scrambled - _OFFSET) * _INVERSE) % _MODULUS
        if sequence > MAX_SEQUENCE:
            raise InvalidIdError(value, "out of range")
        return sequence

    def is_valid(self, value: str) -> bool:
        try:
            self.decode(value)
        except InvalidIdError:
            return False
        return True
