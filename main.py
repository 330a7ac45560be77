"""Entry point - launches the match server via CLI args.

Usage:
    python main.py                          # Serve on localhost:8765
    python main.py 0.0.0.0 9000             # Serve on custom host/port
    python main.py 0.0.0.0 9000 game.json   # ... with a balance config file

The config file can also be given through SATIRE_EMPIRE_CONFIG.
"""

import asyncio
import logging
import sys

from shared.constants import DEFAULT_HOST, DEFAULT_PORT


async def main():
    args = sys.argv[1:]
    if args and args[0] in ("-h", "--help"):
        print(__doc__)
        sys.exit(0)

    from server.config import load_config
    from server.server import main as server_main

    host = args[0] if len(args) > 0 else DEFAULT_HOST
    port = int(args[1]) if len(args) > 1 else DEFAULT_PORT
    config = load_config(args[2] if len(args) > 2 else None)
    print(f"Starting Satire Empire server on {host}:{port}")
    await server_main(host, port, config=config)


def run():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
