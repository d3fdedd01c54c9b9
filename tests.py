import unittest
import tempfile
import io
import os
import sys
import random
from collections import Counter
from contextlib import redirect_stdout, redirect_stderr

from bitarray import frozenbitarray

from bitstream import BitReader, BitWriter, UnexpectedEndOfInput
from huffman import HuffmanNode, HuffmanTree, build_tree, count_frequencies
from format import (ContainerHeader, ContainerError, TruncatedContainer, InvalidHeader,
                    read_header, MAX_TREE_BITS)
from compressor import encode, decode, compress_bytes, decompress_bytes
from archiver import Archiver, default_decoded_path, default_encoded_path
from main import main


AAAB_CONTAINER = bytes.fromhex('00000013' '00000004' '988c3c')
ZZZZZ_CONTAINER = bytes.fromhex('00000013' '00000005' '9e8f60')


def patch_header(blob: bytes, tree_bits: int, data_bits: int) -> bytes:
    return ContainerHeader(tree_bits, data_bits).serialize() + blob[8:]


class ChangingSource(io.BytesIO):
    """Replaces its contents when encode rewinds for the second pass."""

    def __init__(self, initial: bytes, replacement: bytes):
        super().__init__(initial)
        self.replacement = replacement

    def seek(self, pos, whence=0):
        if self.replacement is not None:
            data, self.replacement = self.replacement, None
            super().seek(0)
            super().write(data)
            super().truncate()
        return super().seek(pos, whence)


class TestBitStream(unittest.TestCase):
    def test_write_single_bits(self):
        out = io.BytesIO()
        writer = BitWriter(out)
        for b in (1, 0, 1):
            writer.bit(b)
        self.assertEqual(writer.tell(), 3)
        writer.flush()
        self.assertEqual(out.getvalue(), b'\xa0')
        self.assertEqual(writer.tell(), 8)

    def test_write_bits_msb_first(self):
        out = io.BytesIO()
        writer = BitWriter(out)
        writer.write_bits(0x1234, 16)
        writer.flush()
        self.assertEqual(out.getvalue(), b'\x12\x34')

    def test_write_bits_rejects_bad_arguments(self):
        writer = BitWriter(io.BytesIO())
        with self.assertRaises(ValueError):
            writer.write_bits(256, 8)
        with self.assertRaises(ValueError):
            writer.write_bits(-1, 8)
        with self.assertRaises(ValueError):
            writer.write_bits(0, 0)
        with self.assertRaises(ValueError):
            writer.write_bits(0, 65)

    def test_patch_after_seek(self):
        out = io.BytesIO()
        writer = BitWriter(out)
        writer.write_bits(0, 16)
        writer.write_bits(0xFF, 8)
        writer.flush()
        writer.seek(0)
        writer.write_bits(0xABCD, 16)
        writer.flush()
        self.assertEqual(out.getvalue(), b'\xab\xcd\xff')

    def test_seek_with_pending_bits(self):
        writer = BitWriter(io.BytesIO())
        writer.bit(1)
        with self.assertRaises(ValueError):
            writer.seek(0)

    def test_read_bits(self):
        reader = BitReader(io.BytesIO(b'\xa5'))
        self.assertEqual(reader.read_bits(4), 0xA)
        self.assertEqual(reader.read_bits(4), 0x5)
        self.assertEqual(reader.tell(), 8)

    def test_read_single_bits(self):
        reader = BitReader(io.BytesIO(b'\xa5'))
        bits = [reader.bit() for _ in range(8)]
        self.assertEqual(bits, [True, False, True, False, False, True, False, True])

    def test_read_header_width(self):
        reader = BitReader(io.BytesIO(b'\xde\xad\xbe\xef'))
        self.assertEqual(reader.read_bits(32), 0xDEADBEEF)

    def test_read_past_end(self):
        reader = BitReader(io.BytesIO(b'\x00'))
        reader.read_bits(8)
        with self.assertRaises(UnexpectedEndOfInput):
            reader.bit()

    def test_read_bits_rejects_bad_count(self):
        reader = BitReader(io.BytesIO(b'\x00' * 16))
        with self.assertRaises(ValueError):
            reader.read_bits(0)
        with self.assertRaises(ValueError):
            reader.read_bits(65)


class TestHuffmanTree(unittest.TestCase):
    def test_two_symbols(self):
        tree = build_tree(Counter(b"aaab"))
        self.assertEqual(tree.leaf_count(), 2)
        self.assertEqual(tree.codes[ord('b')], frozenbitarray('0'))
        self.assertEqual(tree.codes[ord('a')], frozenbitarray('1'))

    def test_equal_weights_break_by_symbol(self):
        tree = build_tree(Counter(b"abc"))
        self.assertEqual(tree.codes[ord('c')].to01(), '0')
        self.assertEqual(tree.codes[ord('a')].to01(), '10')
        self.assertEqual(tree.codes[ord('b')].to01(), '11')

    def test_leaves_win_ties_against_internal_nodes(self):
        tree = build_tree(Counter(b"abcdee"))
        codes = {chr(s): c.to01() for s, c in tree.codes.items()}
        self.assertEqual(codes, {'c': '00', 'd': '01', 'e': '10', 'a': '110', 'b': '111'})

    def test_insertion_order_does_not_matter(self):
        first = build_tree({98: 1, 97: 3, 99: 3})
        second = build_tree({99: 3, 97: 3, 98: 1})
        self.assertEqual(first.codes, second.codes)

    def test_single_symbol_gets_sentinel(self):
        tree = build_tree(Counter(b"zzzzz"))
        self.assertEqual(tree.leaf_count(), 2)
        self.assertEqual(tree.codes, {ord('z'): frozenbitarray('0')})
        self.assertTrue(tree.root.right.sentinel)
        self.assertEqual(tree.root.right.symbol, ord('z') + 1)

    def test_sentinel_wraps_around(self):
        tree = build_tree({255: 4})
        self.assertEqual(tree.root.right.symbol, 0)

    def test_empty_frequencies(self):
        tree = build_tree({})
        self.assertTrue(tree.is_empty)
        self.assertEqual(tree.leaf_count(), 0)
        self.assertEqual(tree.codes, {})

    def test_zero_counts_are_ignored(self):
        tree = build_tree({97: 0, 98: 5})
        self.assertEqual(list(tree.codes), [98])

    def test_symbol_out_of_range(self):
        with self.assertRaises(ValueError):
            build_tree({256: 1, 1: 1})

    def test_leaf_count_matches_distinct_symbols(self):
        data = b"this is an example of a huffman tree"
        tree = build_tree(Counter(data))
        self.assertEqual(tree.leaf_count(), len(set(data)))

    def test_prefix_free(self):
        data = b"this is an example of a huffman tree"
        codes = list(build_tree(Counter(data)).codes.values())
        for i, a in enumerate(codes):
            for b in codes[i + 1:]:
                shorter, longer = sorted((a, b), key=len)
                self.assertNotEqual(longer[:len(shorter)], shorter)

    def test_serialized_length(self):
        tree = build_tree(Counter(b"abc"))
        self.assertEqual(tree.serialized_length(), 2 + 3 * 9)

        out = io.BytesIO()
        writer = BitWriter(out)
        tree.serialize(writer)
        self.assertEqual(writer.tell(), tree.serialized_length())

    def test_payload_bits(self):
        freqs = Counter(b"abcab")
        tree = build_tree(freqs)
        self.assertEqual(tree.payload_bits(freqs), 8)

    def test_serialize_deserialize(self):
        tree = build_tree(Counter(b"Lorem ipsum dolor sit amet"))
        out = io.BytesIO()
        writer = BitWriter(out)
        tree.serialize(writer)
        writer.flush()

        restored = HuffmanTree.deserialize(BitReader(io.BytesIO(out.getvalue())),
                                           tree.serialized_length())
        self.assertEqual(restored.codes, tree.codes)

    def test_read_symbol_walks_from_root(self):
        tree = build_tree(Counter(b"abc"))
        reader = BitReader(io.BytesIO(b'\x6c'))  # 0 11 0 11 0 -> c b c b c
        symbols = [tree.decode_symbol(reader) for _ in range(5)]
        self.assertEqual(bytes(symbols), b"cbcbc")

    def test_bare_leaf_rejected(self):
        reader = BitReader(io.BytesIO(b'\x20\x80'))
        with self.assertRaises(TruncatedContainer):
            HuffmanTree.deserialize(reader, 9)

    def test_tree_too_deep(self):
        reader = BitReader(io.BytesIO(b'\xff' * 400))
        with self.assertRaises(TruncatedContainer):
            HuffmanNode.decode(reader)

    def test_code_table_sorted_by_frequency(self):
        freqs = Counter(b"aaab")
        rows = build_tree(freqs).code_table(freqs)
        self.assertEqual(rows, [(97, 3, '1'), (98, 1, '0')])

    def test_count_frequencies(self):
        freqs = count_frequencies(io.BytesIO(b"aaab"), chunk_size=2)
        self.assertEqual(freqs, Counter({97: 3, 98: 1}))


class TestContainerFormat(unittest.TestCase):
    def test_header_serialize(self):
        header = ContainerHeader(19, 4)
        self.assertEqual(header.serialize(), b'\x00\x00\x00\x13\x00\x00\x00\x04')
        self.assertEqual(ContainerHeader.deserialize(header.serialize()), header)
        self.assertEqual(header.total_bytes, 11)

    def test_header_too_short(self):
        with self.assertRaises(TruncatedContainer):
            ContainerHeader.deserialize(b'\x00\x00\x00')

    def test_read_header_leaves_stream_at_tree(self):
        stream = io.BytesIO(AAAB_CONTAINER)
        self.assertEqual(read_header(stream), ContainerHeader(19, 4))
        self.assertEqual(stream.tell(), 8)

    def test_validate(self):
        ContainerHeader(0, 0).validate()
        ContainerHeader(19, 4).validate()
        with self.assertRaises(InvalidHeader):
            ContainerHeader(0, 5).validate()
        with self.assertRaises(InvalidHeader):
            ContainerHeader(19, 0).validate()
        with self.assertRaises(InvalidHeader):
            ContainerHeader(5, 1).validate()
        with self.assertRaises(InvalidHeader):
            ContainerHeader(MAX_TREE_BITS + 1, 1).validate()

    def test_field_width_overflow(self):
        with self.assertRaises(ContainerError):
            ContainerHeader(19, 1 << 32).check_widths()


class TestCompressor(unittest.TestCase):
    def test_two_symbol_container_layout(self):
        self.assertEqual(compress_bytes(b"aaab"), AAAB_CONTAINER)
        self.assertEqual(decompress_bytes(AAAB_CONTAINER), b"aaab")

    def test_empty_input(self):
        blob = compress_bytes(b"")
        self.assertEqual(blob, b'\x00' * 8)
        self.assertEqual(decompress_bytes(blob), b"")

    def test_single_symbol_container_layout(self):
        self.assertEqual(compress_bytes(b"zzzzz"), ZZZZZ_CONTAINER)
        self.assertEqual(decompress_bytes(ZZZZZ_CONTAINER), b"zzzzz")

    def test_single_byte(self):
        self.assertEqual(decompress_bytes(compress_bytes(b"A")), b"A")

    def test_all_byte_values(self):
        data = bytes(range(256))
        blob = compress_bytes(data)
        self.assertEqual(read_header(io.BytesIO(blob)), ContainerHeader(MAX_TREE_BITS, 2048))
        self.assertEqual(len(blob), 584)
        self.assertEqual(decompress_bytes(blob), data)

    def test_long_identical_run(self):
        data = b"x" * 100000
        blob = compress_bytes(data)
        self.assertEqual(read_header(io.BytesIO(blob)).data_bits, 100000)
        self.assertEqual(decompress_bytes(blob), data)

    def test_text(self):
        data = b"The quick brown fox jumps over the lazy dog"
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)

    def test_deterministic(self):
        data = b"Lorem ipsum dolor sit amet " * 200
        self.assertEqual(compress_bytes(data), compress_bytes(data))

    def test_stats(self):
        stats = encode(io.BytesIO(b"aaab"), io.BytesIO())
        self.assertEqual(stats.original_size, 4)
        self.assertEqual(stats.container_size, 11)
        self.assertEqual(stats.tree_bits, 19)
        self.assertEqual(stats.data_bits, 4)
        self.assertEqual(stats.distinct_symbols, 2)
        self.assertEqual(stats.bits_per_symbol, 1.0)
        self.assertEqual(stats.ratio, 275.0)

    def test_decode_returns_byte_count(self):
        out = io.BytesIO()
        self.assertEqual(decode(io.BytesIO(AAAB_CONTAINER), out), 4)

    def test_header_matches_consumed_bits(self):
        data = b"header accuracy check, header accuracy check"
        reader = BitReader(io.BytesIO(compress_bytes(data)))
        header = ContainerHeader.read(reader)

        start = reader.tell()
        tree = HuffmanTree.deserialize(reader, header.tree_bits)
        self.assertEqual(reader.tell() - start, header.tree_bits)

        start = reader.tell()
        decoded = bytes(tree.decode_symbol(reader) for _ in range(len(data)))
        self.assertEqual(reader.tell() - start, header.data_bits)
        self.assertEqual(decoded, data)

    def test_embedded_in_larger_stream(self):
        target = io.BytesIO()
        target.write(b'HEAD')
        source = io.BytesIO(b'XXaaab')
        source.seek(2)

        encode(source, target)

        self.assertEqual(target.tell(), 4 + len(AAAB_CONTAINER))
        self.assertEqual(target.getvalue(), b'HEAD' + AAAB_CONTAINER)

    def test_truncated_payload(self):
        blob = compress_bytes(b"hello huffman world")
        out = io.BytesIO()
        with self.assertRaises(TruncatedContainer):
            decode(io.BytesIO(blob[:-1]), out)
        self.assertTrue(b"hello huffman world".startswith(out.getvalue()))

    def test_truncated_tree(self):
        with self.assertRaises(TruncatedContainer):
            decompress_bytes(AAAB_CONTAINER[:9])

    def test_truncated_header(self):
        with self.assertRaises(TruncatedContainer):
            decompress_bytes(AAAB_CONTAINER[:5])
        with self.assertRaises(TruncatedContainer):
            decompress_bytes(b"")

    def test_tree_length_mismatch(self):
        with self.assertRaises(TruncatedContainer):
            decompress_bytes(patch_header(AAAB_CONTAINER, 20, 4))

    def test_payload_overrun(self):
        blob = compress_bytes(b"abcab")
        self.assertEqual(read_header(io.BytesIO(blob)), ContainerHeader(29, 8))
        with self.assertRaises(TruncatedContainer):
            decompress_bytes(patch_header(blob, 29, 6))

    def test_deep_tree_rejected(self):
        blob = ContainerHeader(MAX_TREE_BITS, 8).serialize() + b'\xff' * 400
        with self.assertRaises(TruncatedContainer):
            decompress_bytes(blob)

    def test_back_to_back_containers(self):
        stream = io.BytesIO(compress_bytes(b"first") + compress_bytes(b"second"))

        first, second = io.BytesIO(), io.BytesIO()
        decode(stream, first)
        self.assertEqual(stream.tell(), len(compress_bytes(b"first")))
        decode(stream, second)

        self.assertEqual(first.getvalue(), b"first")
        self.assertEqual(second.getvalue(), b"second")
        self.assertEqual(stream.tell(), len(stream.getvalue()))

    def test_input_gains_unknown_byte_between_passes(self):
        with self.assertRaisesRegex(ContainerError, "unexpected byte 0x63"):
            encode(ChangingSource(b"aaab", b"aaac"), io.BytesIO())

    def test_input_grows_between_passes(self):
        with self.assertRaisesRegex(ContainerError, "5 payload bits, expected 4"):
            encode(ChangingSource(b"aaab", b"aaaab"), io.BytesIO())


class TestArchiver(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.archiver = Archiver(quiet=True)

    def tearDown(self):
        import shutil
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _write(self, name: str, data: bytes) -> str:
        path = os.path.join(self.temp_dir, name)
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def test_default_paths(self):
        self.assertEqual(default_encoded_path('a.txt'), 'a.txt.huf')
        self.assertEqual(default_decoded_path('a.txt.huf'), 'a.txt')
        self.assertEqual(default_decoded_path('a.bin'), 'a.bin.out')

    def test_compress_decompress_file(self):
        original = b"Hello World! " * 100
        test_file = self._write("test.txt", original)
        restored = os.path.join(self.temp_dir, "restored.txt")

        stats = self.archiver.compress_file(test_file)
        self.assertTrue(os.path.isfile(test_file + '.huf'))
        self.assertLess(stats.container_size, stats.original_size)

        self.assertTrue(self.archiver.decompress_file(test_file + '.huf', restored))
        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), original)

    def test_missing_input(self):
        with redirect_stdout(io.StringIO()):
            self.assertIsNone(self.archiver.compress_file(os.path.join(self.temp_dir, "nope")))
            self.assertFalse(self.archiver.decompress_file(os.path.join(self.temp_dir, "nope")))

    def test_truncated_container_removes_output(self):
        container = self._write("bad.huf", compress_bytes(b"some text to truncate")[:-1])
        output = os.path.join(self.temp_dir, "bad")

        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertFalse(self.archiver.decompress_file(container))

        self.assertFalse(os.path.exists(output))
        self.assertIn("Error reading container", buf.getvalue())

    def test_show_info(self):
        container = self._write("aaab.huf", AAAB_CONTAINER)
        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertTrue(self.archiver.show_info(container))

        text = buf.getvalue()
        self.assertIn("Tree bits:     19", text)
        self.assertIn("Payload bits:  4", text)
        self.assertIn("Tree leaves:   2", text)

    def test_show_codes(self):
        test_file = self._write("aaab.txt", b"aaab")
        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertTrue(self.archiver.show_codes(test_file))
        self.assertIn("0x61", buf.getvalue())
        self.assertIn("2 symbols, 4 payload bits", buf.getvalue())

    def test_status_output(self):
        test_file = self._write("status.txt", b"status " * 10)
        buf = io.StringIO()
        with redirect_stdout(buf):
            Archiver().compress_file(test_file)
        self.assertIn("Encoding status.txt... OK", buf.getvalue())

    def test_output_same_as_input_rejected(self):
        container = self._write("same.huf", AAAB_CONTAINER)
        text_file = self._write("same.txt", b"keep me")

        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertFalse(self.archiver.decompress_file(container, container))
            self.assertIsNone(self.archiver.compress_file(text_file, text_file))

        self.assertIn("would overwrite the input", buf.getvalue())
        with open(container, 'rb') as f:
            self.assertEqual(f.read(), AAAB_CONTAINER)
        with open(text_file, 'rb') as f:
            self.assertEqual(f.read(), b"keep me")

    def test_stats_output(self):
        test_file = self._write("stats.txt", b"aaab")
        buf = io.StringIO()
        with redirect_stdout(buf):
            Archiver(quiet=True, stats=True).compress_file(test_file)

        text = buf.getvalue()
        self.assertIn("Huffman Compression Statistics", text)
        self.assertIn("Container size:    11 bytes", text)
        self.assertNotIn("Encoding", text)


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        import shutil
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_encode_decode(self):
        source = os.path.join(self.temp_dir, "input.bin")
        restored = os.path.join(self.temp_dir, "restored.bin")
        data = bytes(range(256)) * 4

        with open(source, 'wb') as f:
            f.write(data)

        self.assertEqual(main(['encode', source, '-q']), 0)
        self.assertEqual(main(['decode', source + '.huf', '-o', restored, '-q']), 0)

        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), data)

    def test_no_command(self):
        with redirect_stdout(io.StringIO()):
            self.assertEqual(main([]), 0)

    def test_missing_file(self):
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            self.assertEqual(main(['info', os.path.join(self.temp_dir, "missing.huf")]), 1)

    def test_encode_stats_flag(self):
        source = os.path.join(self.temp_dir, "input.txt")
        with open(source, 'wb') as f:
            f.write(b"stats flag " * 20)

        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertEqual(main(['encode', source, '-q', '--stats']), 0)
        self.assertIn("Huffman Compression Statistics", buf.getvalue())


class TestEdgeCases(unittest.TestCase):
    def test_random_data(self):
        random.seed(42)
        data = bytes(random.randint(0, 255) for _ in range(5000))
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)

    def test_skewed_distribution(self):
        # частоты Фибоначчи дают максимально глубокое дерево
        fib = [1, 1]
        while len(fib) < 20:
            fib.append(fib[-1] + fib[-2])
        data = b''.join(bytes([i]) * n for i, n in enumerate(fib))

        tree = build_tree(Counter(data))
        self.assertEqual(max(len(c) for c in tree.codes.values()), 19)
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)

    def test_binary_zeros(self):
        data = b'\x00' * 1000 + b'\xff'
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)

    def test_large_payload_crosses_chunks(self):
        data = b"Lorem ipsum dolor sit amet " * 5000
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestBitStream))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanTree))
    suite.addTests(loader.loadTestsFromTestCase(TestContainerFormat))
    suite.addTests(loader.loadTestsFromTestCase(TestCompressor))
    suite.addTests(loader.loadTestsFromTestCase(TestArchiver))
    suite.addTests(loader.loadTestsFromTestCase(TestCommandLine))
    suite.addTests(loader.loadTestsFromTestCase(TestEdgeCases))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
