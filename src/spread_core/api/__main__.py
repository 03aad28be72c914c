"""Allow running the API as: python -m spread_core.api [--host H] [--port P]."""

import argparse

from spread_core.api.runner import main

parser = argparse.ArgumentParser(description="Spread settlement API server")
parser.add_argument("--host", default="0.0.0.0")
parser.add_argument("--port", type=int, default=8000)
args = parser.parse_args()
main(host=args.host, port=args.port)
