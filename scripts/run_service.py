#!/usr/bin/env python3
"""Run one of the hotel services under uvicorn on its configured port."""
import argparse

import uvicorn

from common.config import get_settings

SERVICES = ("users", "rooms", "bookings", "ratings")


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("service", choices=SERVICES)
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()

    port = get_settings().service_port(args.service)
    uvicorn.run(f"services.{args.service}.app:app", host=args.host, port=port, reload=args.reload)


if __name__ == "__main__":
    main()
