"""
Кодек контейнера: подсчёт частот, построение дерева, запись дерева и
закодированных данных, исправление заголовка по фактическим длинам.
Декодирование выполняет обратные шаги.
"""

import io
from typing import BinaryIO

from bitstream import BitReader, BitWriter, UnexpectedEndOfInput
from format import (HEADER_FIELD_BITS, ContainerError, ContainerHeader,
                    TruncatedContainer)
from huffman import HuffmanTree, build_tree, count_frequencies


CHUNK_SIZE = 64 * 1024


class CompressionStats:
    def __init__(self, original_size: int, tree_bits: int, data_bits: int,
                 distinct_symbols: int):
        self.original_size = original_size
        self.tree_bits = tree_bits
        self.data_bits = data_bits
        self.distinct_symbols = distinct_symbols

        self.container_size = ContainerHeader(tree_bits, data_bits).total_bytes

        self.ratio = (
            self.container_size / original_size * 100
            if original_size > 0 else 0
        )
        self.bits_per_symbol = (
            data_bits / original_size
            if original_size > 0 else 0
        )

    def print_stats(self):
        print(f"Huffman Compression Statistics:")
        print(f"  Original size:     {self.original_size} bytes")
        print(f"  Container size:    {self.container_size} bytes")
        print(f"  Distinct symbols:  {self.distinct_symbols}")
        print(f"  Tree bits:         {self.tree_bits}")
        print(f"  Payload bits:      {self.data_bits}")
        print(f"  Mean code length:  {self.bits_per_symbol:.3f} bits")
        print(f"  Compression ratio: {self.ratio:.1f}%")


def encode(source: BinaryIO, target: BinaryIO) -> CompressionStats:
    """
    Write a container for everything readable from ``source``.

    ``source`` is read twice (frequencies, then payload) and must be
    seekable; ``target`` must be seekable so the header can be patched.
    """
    start = source.tell()
    frequencies = count_frequencies(source, CHUNK_SIZE)
    original_size = sum(frequencies.values())

    writer = BitWriter(target)

    if not frequencies:
        ContainerHeader().write(writer)
        writer.flush()
        return CompressionStats(0, 0, 0, 0)

    tree = build_tree(frequencies)
    expected = ContainerHeader(tree.serialized_length(),
                               tree.payload_bits(frequencies))
    expected.check_widths()

    # место под заголовок, заполняется в конце
    writer.write_bits(0, HEADER_FIELD_BITS)
    writer.write_bits(0, HEADER_FIELD_BITS)

    tree_start = writer.tell()
    tree.serialize(writer)
    tree_bits = writer.tell() - tree_start
    assert tree_bits == expected.tree_bits

    codes = tree.codes
    source.seek(start)

    data_start = writer.tell()
    for chunk in iter(lambda: source.read(CHUNK_SIZE), b''):
        for byte in chunk:
            code = codes.get(byte)
            if code is None:
                raise ContainerError(
                    f"Input changed between passes: unexpected byte 0x{byte:02x}")
            writer.write_code(code)
    data_bits = writer.tell() - data_start

    if data_bits != expected.data_bits:
        raise ContainerError(
            f"Input changed between passes: {data_bits} payload bits, "
            f"expected {expected.data_bits}")

    writer.flush()
    end = writer.tell() // 8

    writer.seek(0)
    ContainerHeader(tree_bits, data_bits).write(writer)
    writer.flush()
    writer.seek(end)

    return CompressionStats(original_size, tree_bits, data_bits,
                            len(frequencies))


def decode(source: BinaryIO, target: BinaryIO) -> int:
    """
    Decode one container from ``source``; returns the number of bytes written.

    A seekable ``source`` is left just past the container, so containers
    stored back to back can be decoded one after another.
    """
    start = source.tell() if source.seekable() else None
    reader = BitReader(source)

    try:
        header = ContainerHeader.read(reader)
    except UnexpectedEndOfInput as e:
        raise TruncatedContainer("Container header is incomplete") from e

    header.validate()

    if header.is_empty:
        written = 0
    else:
        try:
            tree = HuffmanTree.deserialize(reader, header.tree_bits)
        except UnexpectedEndOfInput as e:
            raise TruncatedContainer("Container ends inside the tree region") from e

        try:
            written = _decode_payload(tree, reader, header.data_bits, target)
        except UnexpectedEndOfInput as e:
            raise TruncatedContainer(
                f"Container ends before {header.data_bits} payload bits were read") from e

    # читатель забирает байты блоками, возвращаемся к концу контейнера
    if start is not None:
        source.seek(start + header.total_bytes)
    return written


def _decode_payload(tree: HuffmanTree, reader: BitReader, data_bits: int,
                    target: BinaryIO) -> int:
    end = reader.tell() + data_bits
    output = bytearray()
    written = 0

    while reader.tell() < end:
        output.append(tree.decode_symbol(reader))

        if len(output) >= CHUNK_SIZE:
            target.write(bytes(output))
            written += len(output)
            output.clear()

    if reader.tell() != end:
        raise TruncatedContainer(
            f"Last symbol overruns the declared payload length "
            f"by {reader.tell() - end} bits")

    target.write(bytes(output))
    return written + len(output)


def compress_bytes(data: bytes) -> bytes:
    output = io.BytesIO()
    encode(io.BytesIO(data), output)
    return output.getvalue()


def decompress_bytes(data: bytes) -> bytes:
    output = io.BytesIO()
    decode(io.BytesIO(data), output)
    return output.getvalue()
