"""
Реализует дерево Хаффмана: построение по таблице частот байтов,
сериализацию дерева в битовый поток и обратно, вывод таблицы кодов.
Частые байты получают более короткие коды.
"""

import heapq
from collections import Counter
from typing import BinaryIO, Dict, Iterator, List, Mapping, Optional, Tuple

from bitarray import bitarray, frozenbitarray

from bitstream import BitReader, BitWriter
from format import ALPHABET_SIZE, MAX_TREE_DEPTH, SYMBOL_BITS, TruncatedContainer


def count_frequencies(stream: BinaryIO, chunk_size: int = 64 * 1024) -> Counter:
    frequencies = Counter()
    for chunk in iter(lambda: stream.read(chunk_size), b''):
        frequencies.update(chunk)
    return frequencies


class HuffmanNode:
    def __init__(self, symbol: Optional[int] = None, freq: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None,
                 order: int = 0, sentinel: bool = False):
        self.symbol = symbol
        self.freq = freq
        self.left = left
        self.right = right
        self.order = order
        self.sentinel = sentinel

    def __lt__(self, other):
        # равные веса упорядочены по порядку создания
        return (self.freq, self.order) < (other.freq, other.order)

    def is_leaf(self) -> bool:
        return self.left is None

    def encode(self, writer: BitWriter):
        """
        Pre-order: bit 1 = internal node followed by left and right subtrees,
        bit 0 = leaf followed by its 8-bit symbol.
        """
        writer.bit(not self.is_leaf())
        if self.is_leaf():
            writer.write_bits(self.symbol, SYMBOL_BITS)
        else:
            self.left.encode(writer)
            self.right.encode(writer)

    @staticmethod
    def decode(reader: BitReader, limit: Optional[int] = None,
               depth: int = 0) -> 'HuffmanNode':
        if depth > MAX_TREE_DEPTH:
            raise TruncatedContainer(
                f"Stored tree is deeper than {MAX_TREE_DEPTH} levels")
        if limit is not None and reader.tell() >= limit:
            raise TruncatedContainer("Tree region overruns its declared length")

        node = HuffmanNode()
        if reader.bit():
            node.left = HuffmanNode.decode(reader, limit, depth + 1)
            node.right = HuffmanNode.decode(reader, limit, depth + 1)
        else:
            node.symbol = reader.read_bits(SYMBOL_BITS)
        return node

    def read_symbol(self, reader: BitReader) -> int:
        node = self
        while not node.is_leaf():
            node = node.right if reader.bit() else node.left
        return node.symbol

    def serialized_length(self) -> int:
        # 1 бит на узел, 9 бит на лист (флаг + символ)
        if self.is_leaf():
            return 1 + SYMBOL_BITS
        return 1 + self.left.serialized_length() + self.right.serialized_length()

    def leaves(self) -> Iterator['HuffmanNode']:
        if self.is_leaf():
            yield self
        else:
            yield from self.left.leaves()
            yield from self.right.leaves()


class HuffmanTree:
    def __init__(self, root: Optional[HuffmanNode] = None):
        self.root = root
        self.codes: Dict[int, frozenbitarray] = {}

    def build(self, frequencies: Mapping[int, int]):
        self.root = None
        self.codes.clear()

        symbols = sorted(s for s, f in frequencies.items() if f > 0)
        for symbol in symbols:
            if not 0 <= symbol < ALPHABET_SIZE:
                raise ValueError(f"Symbol out of byte range: {symbol}")

        if not symbols:
            return

        heap = [HuffmanNode(symbol=s, freq=frequencies[s], order=i)
                for i, s in enumerate(symbols)]
        heapq.heapify(heap)

        if len(heap) == 1:
            # один символ: добавляем недостижимый лист, чтобы код был длины 1
            only = heap[0]
            sentinel = HuffmanNode(symbol=(only.symbol + 1) % ALPHABET_SIZE,
                                   order=1, sentinel=True)
            self.root = HuffmanNode(freq=only.freq, left=only, right=sentinel,
                                    order=2)
        else:
            order = len(heap)
            while len(heap) > 1:
                left = heapq.heappop(heap)
                right = heapq.heappop(heap)

                parent = HuffmanNode(freq=left.freq + right.freq,
                                     left=left, right=right, order=order)
                order += 1
                heapq.heappush(heap, parent)

            self.root = heap[0]

        self._generate_codes()

    def _generate_codes(self):
        self.codes.clear()

        if self.root is None:
            return

        def traverse(node: HuffmanNode, prefix: bitarray):
            if node.is_leaf():
                if not node.sentinel:
                    self.codes[node.symbol] = frozenbitarray(prefix)
                return

            traverse(node.left, prefix + bitarray('0'))
            traverse(node.right, prefix + bitarray('1'))

        traverse(self.root, bitarray())

    @property
    def is_empty(self) -> bool:
        return self.root is None

    def leaf_count(self) -> int:
        if self.root is None:
            return 0
        return sum(1 for _ in self.root.leaves())

    def serialized_length(self) -> int:
        if self.root is None:
            return 0
        return self.root.serialized_length()

    def payload_bits(self, frequencies: Mapping[int, int]) -> int:
        return sum(freq * len(self.codes[symbol])
                   for symbol, freq in frequencies.items() if freq > 0)

    def serialize(self, writer: BitWriter):
        if self.root is not None:
            self.root.encode(writer)

    @staticmethod
    def deserialize(reader: BitReader, tree_bits: int) -> 'HuffmanTree':
        start = reader.tell()
        root = HuffmanNode.decode(reader, start + tree_bits)

        consumed = reader.tell() - start
        if consumed != tree_bits:
            raise TruncatedContainer(
                f"Tree region is {consumed} bits, header declares {tree_bits}")
        if root.is_leaf():
            raise TruncatedContainer("Stored tree has no internal node")

        tree = HuffmanTree(root)
        tree._generate_codes()
        return tree

    def decode_symbol(self, reader: BitReader) -> int:
        return self.root.read_symbol(reader)

    def code_table(self, frequencies: Optional[Mapping[int, int]] = None
                   ) -> List[Tuple[int, int, str]]:
        """Rows of (symbol, frequency, code), most frequent first."""
        frequencies = frequencies or {}
        rows = [(symbol, frequencies.get(symbol, 0), code.to01())
                for symbol, code in self.codes.items()]
        rows.sort(key=lambda row: (-row[1], len(row[2]), row[0]))
        return rows


def build_tree(frequencies: Mapping[int, int]) -> HuffmanTree:
    tree = HuffmanTree()
    tree.build(frequencies)
    return tree
