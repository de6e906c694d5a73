"""Command line entry point for the UDP file server."""

from __future__ import annotations

import argparse
import logging
import time

from .server import FileServer

RUN_SECONDS = 100000.0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udpfileserver", description="Serve files under FS_PATH over UDP."
    )
    parser.add_argument("port", type=int, help="UDP port to listen on")
    parser.add_argument("fs_path", help="directory that holds the served files")
    parser.add_argument(
        "--duration",
        type=float,
        default=RUN_SECONDS,
        help="seconds to run before shutting down",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the server for the configured time; return the exit status."""
    args = _parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    server = FileServer(args.fs_path, port=args.port)
    server.start()
    host, port = server.address
    print(f"IP address: {host}, PORT: {port}", flush=True)
    try:
        time.sleep(args.duration)
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())