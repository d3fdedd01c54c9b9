"""
Главный класс для сжатия и разжатия файлов.
"""

import os
from pathlib import Path
from typing import Optional

from bitstream import BitReader, UnexpectedEndOfInput
from compressor import CompressionStats, decode, encode
from format import ContainerError, read_header
from huffman import HuffmanTree, build_tree, count_frequencies


CONTAINER_SUFFIX = '.huf'

SPECIAL_CHARS = {0: 'NULL', 9: 'TAB', 10: 'LF', 13: 'CR', 32: 'SP', 127: 'DEL'}


def default_encoded_path(input_path: str) -> str:
    return input_path + CONTAINER_SUFFIX


def default_decoded_path(input_path: str) -> str:
    if input_path.endswith(CONTAINER_SUFFIX) and len(input_path) > len(CONTAINER_SUFFIX):
        return input_path[:-len(CONTAINER_SUFFIX)]
    return input_path + '.out'


def is_same_file(input_path: str, output_path: str) -> bool:
    if os.path.abspath(input_path) == os.path.abspath(output_path):
        return True
    return os.path.exists(output_path) and os.path.samefile(input_path, output_path)


def display_char(symbol: int) -> str:
    if symbol in SPECIAL_CHARS:
        return SPECIAL_CHARS[symbol]
    if 32 < symbol < 127:
        return repr(chr(symbol))
    return ''


class Archiver:
    def __init__(self, quiet: bool = False, stats: bool = False):
        self.quiet = quiet
        self.stats = stats

    def _status(self, *args, **kwargs):
        if not self.quiet:
            print(*args, **kwargs)

    def compress_file(self, input_path: str,
                      output_path: Optional[str] = None) -> Optional[CompressionStats]:
        if not os.path.isfile(input_path):
            print(f"Error: {input_path} not found")
            return None

        output_path = output_path or default_encoded_path(input_path)
        if is_same_file(input_path, output_path):
            print(f"Error: output {output_path} would overwrite the input")
            return None

        self._status(f"Encoding {Path(input_path).name}...", end=" ")
        with open(input_path, 'rb') as src, open(output_path, 'wb') as dst:
            stats = encode(src, dst)
        self._status(f"OK ({stats.ratio:.1f}%)")

        self._status(f"Container written: {output_path}")
        self._status(f"Total: {stats.original_size} -> {stats.container_size} bytes")
        if self.stats:
            stats.print_stats()
        return stats

    def decompress_file(self, input_path: str,
                        output_path: Optional[str] = None) -> bool:
        if not os.path.isfile(input_path):
            print(f"Error: {input_path} not found")
            return False

        output_path = output_path or default_decoded_path(input_path)
        if is_same_file(input_path, output_path):
            print(f"Error: output {output_path} would overwrite the input")
            return False

        self._status(f"Decoding {Path(input_path).name}...", end=" ")
        try:
            with open(input_path, 'rb') as src, open(output_path, 'wb') as dst:
                written = decode(src, dst)
        except ContainerError as e:
            self._status("FAILED")
            print(f"Error reading container: {e}")
            os.remove(output_path)
            return False

        self._status(f"OK ({written} bytes)")
        self._status(f"Output written: {output_path}")
        return True

    def show_info(self, container_path: str) -> bool:
        if not os.path.isfile(container_path):
            print(f"Error: Container {container_path} not found")
            return False

        with open(container_path, 'rb') as f:
            try:
                header = read_header(f)
                header.validate()
                leaves = 0
                if not header.is_empty:
                    leaves = HuffmanTree.deserialize(
                        BitReader(f), header.tree_bits).leaf_count()
            except UnexpectedEndOfInput:
                print("Error reading container: ends inside the tree region")
                return False
            except ContainerError as e:
                print(f"Error reading container: {e}")
                return False

        actual_size = os.path.getsize(container_path)

        print(f"Container:       {container_path}")
        print(f"  Tree bits:     {header.tree_bits}")
        print(f"  Payload bits:  {header.data_bits}")
        print(f"  Tree leaves:   {leaves}")
        print(f"  Expected size: {header.total_bytes} bytes")
        print(f"  Actual size:   {actual_size} bytes")

        if actual_size < header.total_bytes:
            print("  Warning: container is truncated")
        return True

    def show_codes(self, input_path: str) -> bool:
        if not os.path.isfile(input_path):
            print(f"Error: {input_path} not found")
            return False

        with open(input_path, 'rb') as f:
            frequencies = count_frequencies(f)

        if not frequencies:
            print("Input is empty, no codes")
            return True

        tree = build_tree(frequencies)

        print(f"{'Symbol':>7} {'Char':<6} {'Hex':>5} {'Frequency':>12}  Code")
        print("-" * 70)
        for symbol, freq, code in tree.code_table(frequencies):
            print(f"{symbol:>7} {display_char(symbol):<6} 0x{symbol:02x} {freq:>12}  {code}")
        print("-" * 70)

        data_bits = tree.payload_bits(frequencies)
        total = sum(frequencies.values())
        print(f"{len(frequencies)} symbols, {data_bits} payload bits, "
              f"{data_bits / total:.3f} bits/symbol")
        return True
