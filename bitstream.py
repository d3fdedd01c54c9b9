"""
Побитовый ввод/вывод поверх байтовых потоков.
Биты читаются и пишутся начиная со старшего (MSB-first).
"""

from typing import BinaryIO, Iterable


READ_CHUNK = 4096
WRITE_CHUNK = 4096
MAX_BITS = 64


class UnexpectedEndOfInput(EOFError):
    pass


def _check_count(count: int):
    if not 1 <= count <= MAX_BITS:
        raise ValueError(f"Bit count must be in [1, {MAX_BITS}], got {count}")


class BitReader:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self._buf = b''
        self._pos = 0
        self._byte = 0
        self._shift = -1
        self._cursor = 0

    def _next_byte(self) -> int:
        if self._pos >= len(self._buf):
            self._buf = self.stream.read(READ_CHUNK)
            self._pos = 0
            if not self._buf:
                raise UnexpectedEndOfInput(
                    f"Unexpected end of bitstream after {self._cursor} bits")

        byte = self._buf[self._pos]
        self._pos += 1
        return byte

    def bit(self) -> bool:
        if self._shift < 0:
            self._byte = self._next_byte()
            self._shift = 7

        b = (self._byte >> self._shift) & 1
        self._shift -= 1
        self._cursor += 1
        return bool(b)

    def read_bits(self, count: int) -> int:
        _check_count(count)

        value = 0
        for _ in range(count):
            value = (value << 1) | self.bit()
        return value

    def tell(self) -> int:
        """Number of bits consumed so far."""
        return self._cursor


class BitWriter:
    """
    Accumulates bits into bytes and writes them to a seekable stream.

    Positions passed to seek() and returned by tell() are relative to the
    stream position at construction time, so a container can be written
    in the middle of a larger file.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self._origin = stream.tell()
        self._out = bytearray()
        self._buf = 0
        self._nbits = 0
        self._cursor = 0

    def bit(self, b):
        self._buf = (self._buf << 1) | (1 if b else 0)
        self._nbits += 1
        self._cursor += 1

        if self._nbits == 8:
            self._out.append(self._buf)
            self._buf = 0
            self._nbits = 0

            if len(self._out) >= WRITE_CHUNK:
                self._drain()

    def write_bits(self, value: int, count: int):
        _check_count(count)
        if value < 0 or value >> count:
            raise ValueError(f"Value {value} does not fit in {count} bits")

        for i in range(count - 1, -1, -1):
            self.bit((value >> i) & 1)

    def write_code(self, code: Iterable[int]):
        for b in code:
            self.bit(b)

    def tell(self) -> int:
        return self._cursor

    def seek(self, byte_offset: int):
        if self._nbits:
            raise ValueError("Cannot seek with a partial byte pending, flush first")

        self._drain()
        self.stream.seek(self._origin + byte_offset)
        self._cursor = byte_offset * 8

    def flush(self):
        # дополняем последний байт нулями
        if self._nbits:
            padding = 8 - self._nbits
            self._out.append(self._buf << padding)
            self._cursor += padding
            self._buf = 0
            self._nbits = 0

        self._drain()

    def _drain(self):
        if self._out:
            self.stream.write(bytes(self._out))
            self._out.clear()
