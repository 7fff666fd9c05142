"""
Command-line front end

    huffman encode INPUT OUTPUT [--table PATH] [--text]
    huffman decode INPUT OUTPUT [--table PATH]
    huffman show INPUT [--text]

encode writes the packed payload to OUTPUT and the code table to --table;
decode needs that table to exist
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, Union

import huffman as huff
import huffman_store as store
from huffman_config import CodecConfig, load_codec_config
from log_utils import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_IO = 2
EXIT_EMPTY_INPUT = 3
EXIT_MISSING_SYMBOL = 4 # reserved; encode derives its own table
EXIT_CORRUPT_PAYLOAD = 5
EXIT_CORRUPT_TABLE = 6

# (error class, exit code, message prefix), most specific first
ERROR_KINDS = [
    (huff.EmptyInputError, EXIT_EMPTY_INPUT, "Input is empty"),
    (huff.MissingSymbolError, EXIT_MISSING_SYMBOL, "Symbol missing from code table"),
    (huff.CorruptPayloadError, EXIT_CORRUPT_PAYLOAD, "Encoded data is corrupted or truncated"),
    (huff.CorruptTableError, EXIT_CORRUPT_TABLE, "Huffman code table is corrupted or invalid"),
    (OSError, EXIT_IO, "I/O error"),
    (UnicodeDecodeError, EXIT_IO, "Input is not valid UTF-8"),
]


def read_symbols(path: str, text_mode: bool) -> Union[bytes, str]:
    data = Path(path).read_bytes()
    return data.decode("utf-8") if text_mode else data


def cmd_encode(args, config: CodecConfig) -> int:
    data = read_symbols(args.input, config.text_mode)
    payload, table = huff.encode(data)
    store.save_payload(payload, args.output)
    store.save_code_table(table, config.table_path)

    packed_size = Path(args.output).stat().st_size
    original_size = len(data.encode("utf-8")) if config.text_mode else len(data)
    logger.debug("payload bits: %s", payload.to01() if len(payload) <= 256 else f"{len(payload)} bits")
    print(f"Encoded {original_size} bytes into {packed_size} bytes "
          f"(ratio {packed_size / original_size:.3f}), {len(table)} symbols")
    print(f"Code table written to {config.table_path}")
    return EXIT_OK


def cmd_decode(args, config: CodecConfig) -> int:
    table = store.load_code_table(config.table_path)
    payload = store.load_payload(args.input)
    symbols = huff.decode(payload, table)

    kind = store.symbol_kind(table)
    decoded = store.join_symbols(symbols, kind)
    out = decoded.encode("utf-8") if kind == store.TEXT else decoded
    Path(args.output).write_bytes(out)
    print(f"Decoded {len(symbols)} symbols into {args.output}")
    return EXIT_OK


def cmd_show(args, config: CodecConfig) -> int:
    data = read_symbols(args.input, config.text_mode)
    if len(data) == 0:
        raise huff.EmptyInputError("nothing to show")
    freq = huff.build_frequency_table(data)
    table = huff.generate_huffman_codes(huff.build_huffman_tree(freq))

    print(" symbol    frequency    Huffman code")
    print(40 * "-")
    for symbol in sorted(table, key=lambda s: (-freq[s], table[s])):
        print(f"{symbol!r:>7} {freq[symbol]:12d}    {table[symbol]}")
    print(f"Average code length: {table.average_code_length(freq):.4f} bits/symbol")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="huffman", description="Huffman encode/decode files")
    ap.add_argument("--config", type=str, default=None, help="YAML config file")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="mode", required=True)

    enc = sub.add_parser("encode", help="Encode INPUT into OUTPUT and write the code table")
    enc.add_argument("input")
    enc.add_argument("output")
    enc.add_argument("--table", type=str, default=None, help="Code table path")
    enc.add_argument("--text", action="store_true", default=None, help="Treat input as UTF-8 text")
    enc.set_defaults(func=cmd_encode)

    dec = sub.add_parser("decode", help="Decode INPUT into OUTPUT using the code table")
    dec.add_argument("input")
    dec.add_argument("output")
    dec.add_argument("--table", type=str, default=None, help="Code table path")
    dec.set_defaults(func=cmd_decode)

    show = sub.add_parser("show", help="Print the Huffman code for INPUT")
    show.add_argument("input")
    show.add_argument("--text", action="store_true", default=None, help="Treat input as UTF-8 text")
    show.set_defaults(func=cmd_show)
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_codec_config(args.config)
        if getattr(args, "table", None):
            config.table_path = args.table
        if getattr(args, "text", None):
            config.text_mode = True
        setup_logging("huffman", level="DEBUG" if args.verbose else config.log_level, log_dir=config.log_dir)
    except (OSError, ValueError) as exc:
        print(f"Error: bad configuration: {exc}", file=sys.stderr)
        return EXIT_IO

    try:
        return args.func(args, config)
    except tuple(kind for kind, _, _ in ERROR_KINDS) as exc:
        for kind, code, message in ERROR_KINDS:
            if isinstance(exc, kind):
                print(f"Error: {message}: {exc}", file=sys.stderr)
                return code
        raise


if __name__ == "__main__":
    raise SystemExit(main())
