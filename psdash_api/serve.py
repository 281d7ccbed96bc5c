"""Entry point: `psdash-api` or `python -m psdash_api.serve`."""
from __future__ import annotations

import argparse
import logging

import uvicorn

from psdash.config import get_settings


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Serve the Product Support Dashboard API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)

    level = get_settings().log_level
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("psdash_api.main:app", host=args.host, port=args.port, reload=args.reload, log_level=level.lower())


if __name__ == "__main__":
    main()
