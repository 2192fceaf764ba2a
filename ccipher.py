#!/usr/bin/env python3
import argparse
import logging
import sys
from contextlib import ExitStack
from typing import List, Optional

from caesar_util import StreamOpenError, caesar_cipher, iter_stream_bytes, open_binary

"""
Encrypt/decrypt ASCII text via Caesar Cipher

Shift every byte of the input by KEY, wrapping around the 128 character ASCII alphabet. Decrypt by shifting
with -KEY (or with the key ccracker reports).
"""

log = logging.getLogger("ccipher")


def print_error_and_exit(msg: str) -> None:
    print(f"error: {msg}", file=sys.stderr)
    sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    """
    >>> import os, tempfile
    >>> with tempfile.TemporaryDirectory() as d:
    ...     out = os.path.join(d, "ciphertext.txt")
    ...     main(["--key", "101", "--infile", "data/plaintext.txt", "--outfile", out])
    ...     open(out, "rb").read() == open("data/ciphertext.txt", "rb").read()
    True
    >>> with tempfile.TemporaryDirectory() as d:
    ...     out = os.path.join(d, "plaintext.txt")
    ...     main(["-k", "-101", "-i", "data/ciphertext.txt", "-o", out])
    ...     open(out, "rb").read() == open("data/plaintext.txt", "rb").read()
    True

    >>> main(["-i", "data/plaintext.txt"])
    Traceback (most recent call last):
    SystemExit: 2
    >>> main(["-k", "1", "-i", "data/no_such_file.txt"])
    Traceback (most recent call last):
    SystemExit: 1
    >>> main(["-k", "1", "-i", "data/plaintext.txt", "-o", "data/no_such_dir/out.txt"])
    Traceback (most recent call last):
    SystemExit: 1
    """
    parser = argparse.ArgumentParser(prog="ccipher", description="encrypt/decrypt ASCII text via Caesar Cipher")
    parser.add_argument("-k", "--key", type=int, required=True, help="cipher key")
    parser.add_argument("-i", "--infile", metavar="FILE", help="input file path (default: read stdin)")
    parser.add_argument("-o", "--outfile", metavar="FILE", help="output file path (default: write stdout)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debugging output to stderr")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(name)s: %(message)s")

    with ExitStack() as stack:
        try:
            infile = stack.enter_context(open_binary(args.infile, "rb", "infile")) if args.infile else sys.stdin.buffer
            outfile = stack.enter_context(open_binary(args.outfile, "wb", "outfile")) if args.outfile \
                else sys.stdout.buffer
        except StreamOpenError as e:
            print_error_and_exit(str(e))

        data = bytes(iter_stream_bytes(infile))
        log.debug("Shifting %d bytes by %d", len(data), args.key)
        outfile.write(caesar_cipher(data, args.key))
        outfile.flush()


if __name__ == "__main__":
    main()
