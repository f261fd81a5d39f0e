"""
Command-line front end for saltstream.

    saltstream encrypt -i notes.txt -o notes.txt.enc --armor
    saltstream decrypt -i notes.txt.enc -o notes.txt --armor

The password is read from ``SALTSTREAM_PASSWORD`` or prompted for; a fixed
key can be given as hex with ``--key-hex`` (or ``SALTSTREAM_KEY``). Input and
output default to stdin/stdout. Errors are printed to stderr and the exit
status is 1.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from contextlib import ExitStack
from typing import BinaryIO, List, Mapping, Optional

from saltstream.core.exceptions import SaltStreamError
from saltstream.frontend.cli.logging_config import configure_logging
from saltstream.security.config import DEFAULT_ALGORITHM, ENV_PREFIX, CipherConfiguration
from saltstream.security.crypto import (
    DEFAULT_CHUNK_SIZE,
    atomic_output,
    decrypt_file_stream,
    decrypt_stream,
    encrypt_file_stream,
    encrypt_stream,
)


logger = logging.getLogger(__name__)

PROG = "saltstream"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Encrypt or decrypt a byte stream with a salted, IV-prefixed envelope.",
    )
    parser.add_argument(
        "command",
        choices=("encrypt", "decrypt"),
        help="Direction of the transform",
    )
    parser.add_argument(
        "-i",
        "--input",
        default=None,
        help="Input file (default: stdin)",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output file (default: stdout)",
    )
    parser.add_argument(
        "-a",
        "--algorithm",
        default=None,
        help=f"Cipher, e.g. aes-128-cbc or chacha20 (default: ${ENV_PREFIX}ALGORITHM or {DEFAULT_ALGORITHM})",
    )
    parser.add_argument(
        "--armor",
        action="store_true",
        help="Write (encrypt) or read (decrypt) lowercase hex instead of raw bytes",
    )
    parser.add_argument(
        "--key-hex",
        default=None,
        help="Use this fixed key (hex) instead of a password",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=DEFAULT_CHUNK_SIZE,
        help="Bytes read per chunk (default: %(default)s)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug with hex traces)",
    )
    return parser


def build_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> CipherConfiguration:
    """Merge command-line options over ``SALTSTREAM_*`` variables."""
    env = dict(os.environ if environ is None else environ)
    if args.algorithm:
        env[ENV_PREFIX + "ALGORITHM"] = args.algorithm
    if args.key_hex:
        env[ENV_PREFIX + "KEY"] = args.key_hex
    if not env.get(ENV_PREFIX + "KEY") and env.get(ENV_PREFIX + "PASSWORD") is None:
        env[ENV_PREFIX + "PASSWORD"] = getpass.getpass("Password: ")
    return CipherConfiguration.from_env(env)


def _run_streams(args, config: CipherConfiguration, error_sink) -> int:
    transform = encrypt_stream if args.command == "encrypt" else decrypt_stream
    with ExitStack() as stack:
        inf: BinaryIO = stack.enter_context(open(args.input, "rb")) if args.input else sys.stdin.buffer
        # file output only lands once the whole stream succeeded
        outf: BinaryIO = stack.enter_context(atomic_output(args.output)) if args.output else sys.stdout.buffer
        written = transform(
            inf, outf, config, armor=args.armor, chunk_size=args.chunk_size, error_sink=error_sink
        )
        outf.flush()
    return written


def run(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> int:
    reported: List[str] = []

    def error_sink(message: str) -> None:
        reported.append(message)
        print(f"{PROG}: error: {message}", file=sys.stderr)

    try:
        config = build_config(args, environ)
        if args.input and args.output:
            # both ends are files: write atomically so failures leave nothing behind
            transform = encrypt_file_stream if args.command == "encrypt" else decrypt_file_stream
            written = transform(
                args.input,
                args.output,
                config,
                armor=args.armor,
                chunk_size=args.chunk_size,
                error_sink=error_sink,
            )
        else:
            written = _run_streams(args, config, error_sink)
    except (SaltStreamError, ValueError, OSError) as e:
        if str(e) not in reported:
            error_sink(str(e))
        return 1

    logger.info("%s: %d bytes written", args.command, written)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    levels = (logging.WARNING, logging.INFO, logging.DEBUG)
    configure_logging(levels[min(args.verbose, len(levels) - 1)])
    return run(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
