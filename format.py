"""
Определяет структуру контейнера и методы чтения/записи заголовка.

Layout (MSB-first, final byte zero-padded):
    tree_bits  : 32 bits
    data_bits  : 32 bits
    tree       : tree_bits bits, pre-order (1 = internal, 0 = leaf + 8-bit symbol)
    payload    : data_bits bits of concatenated symbol codes
"""

import struct
from dataclasses import dataclass
from typing import BinaryIO

from bitstream import BitReader, BitWriter


HEADER_FIELD_BITS = 32
HEADER_BITS = 2 * HEADER_FIELD_BITS
HEADER_BYTES = HEADER_BITS // 8
HEADER_FMT = '>II'

SYMBOL_BITS = 8
ALPHABET_SIZE = 1 << SYMBOL_BITS
MAX_FIELD_VALUE = (1 << HEADER_FIELD_BITS) - 1

MAX_TREE_DEPTH = ALPHABET_SIZE - 1
MIN_TREE_BITS = 1 + 2 * (1 + SYMBOL_BITS)
MAX_TREE_BITS = (ALPHABET_SIZE - 1) + ALPHABET_SIZE * (1 + SYMBOL_BITS)


class ContainerError(ValueError):
    pass


class TruncatedContainer(ContainerError):
    pass


class InvalidHeader(ContainerError):
    pass


@dataclass
class ContainerHeader:
    tree_bits: int = 0
    data_bits: int = 0

    @property
    def is_empty(self) -> bool:
        return self.tree_bits == 0 and self.data_bits == 0

    @property
    def body_bits(self) -> int:
        return self.tree_bits + self.data_bits

    @property
    def total_bytes(self) -> int:
        return (HEADER_BITS + self.body_bits + 7) // 8

    def check_widths(self):
        for name, value in (('tree', self.tree_bits), ('data', self.data_bits)):
            if value > MAX_FIELD_VALUE:
                raise ContainerError(
                    f"Input too large: {name} region needs {value} bits, "
                    f"header field holds at most {MAX_FIELD_VALUE}")

    def validate(self):
        if self.tree_bits == 0:
            if self.data_bits != 0:
                raise InvalidHeader(
                    f"Container has no tree but declares {self.data_bits} payload bits")
            return

        if not MIN_TREE_BITS <= self.tree_bits <= MAX_TREE_BITS:
            raise InvalidHeader(
                f"Implausible tree length: {self.tree_bits} bits "
                f"(expected {MIN_TREE_BITS}..{MAX_TREE_BITS})")

        if self.data_bits == 0:
            raise InvalidHeader("Container has a tree but an empty payload")

    def write(self, writer: BitWriter):
        writer.write_bits(self.tree_bits, HEADER_FIELD_BITS)
        writer.write_bits(self.data_bits, HEADER_FIELD_BITS)

    @staticmethod
    def read(reader: BitReader) -> 'ContainerHeader':
        tree_bits = reader.read_bits(HEADER_FIELD_BITS)
        data_bits = reader.read_bits(HEADER_FIELD_BITS)
        return ContainerHeader(tree_bits, data_bits)

    def serialize(self) -> bytes:
        return struct.pack(HEADER_FMT, self.tree_bits, self.data_bits)

    @staticmethod
    def deserialize(data: bytes) -> 'ContainerHeader':
        if len(data) < HEADER_BYTES:
            raise TruncatedContainer(
                f"Container header needs {HEADER_BYTES} bytes, got {len(data)}")

        tree_bits, data_bits = struct.unpack(HEADER_FMT, data[:HEADER_BYTES])
        return ContainerHeader(tree_bits, data_bits)


def read_header(stream: BinaryIO) -> ContainerHeader:
    """Read only the fixed-size header, leaving the stream at the tree region."""
    return ContainerHeader.deserialize(stream.read(HEADER_BYTES))
