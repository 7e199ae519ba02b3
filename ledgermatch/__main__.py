"""
Server entry point: python -m ledgermatch [--host HOST] [--port PORT]
"""

import argparse

import uvicorn

from .config import get_settings


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Bank statement match suggestion API")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to run the server on")
    args = parser.parse_args()

    print(f"Starting ledgermatch on {args.host}:{args.port}")
    uvicorn.run("ledgermatch.api:app", host=args.host, port=args.port,
                log_level=settings.app_log_level.lower())


if __name__ == "__main__":
    main()
