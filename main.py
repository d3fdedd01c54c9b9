"""
Командная строка для компрессора Хаффмана.
"""

import argparse
import sys
from archiver import Archiver


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Huffman container compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py encode notes.txt
  python main.py decode notes.txt.huf -o notes_copy.txt
  python main.py info notes.txt.huf
  python main.py codes notes.txt
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    encode_parser = subparsers.add_parser('encode', help='Compress a file into a container')
    encode_parser.add_argument('input', help='File to compress')
    encode_parser.add_argument('-o', '--output', help='Container path (default: INPUT.huf)')
    encode_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress status output')
    encode_parser.add_argument('-s', '--stats', action='store_true', help='Print compression statistics')

    decode_parser = subparsers.add_parser('decode', help='Restore a file from a container')
    decode_parser.add_argument('input', help='Container to decompress')
    decode_parser.add_argument('-o', '--output', help='Output path (default: INPUT without .huf)')
    decode_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress status output')

    info_parser = subparsers.add_parser('info', help='Show container header')
    info_parser.add_argument('container', help='Container path')

    codes_parser = subparsers.add_parser('codes', help='Show the code table for a file')
    codes_parser.add_argument('input', help='File to analyse')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    archiver = Archiver(quiet=getattr(args, 'quiet', False),
                        stats=getattr(args, 'stats', False))

    try:
        if args.command == 'encode':
            ok = archiver.compress_file(args.input, args.output) is not None

        elif args.command == 'decode':
            ok = archiver.decompress_file(args.input, args.output)

        elif args.command == 'info':
            ok = archiver.show_info(args.container)

        elif args.command == 'codes':
            ok = archiver.show_codes(args.input)

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0 if ok else 1


if __name__ == '__main__':
    sys.exit(main())
