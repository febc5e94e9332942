#!/usr/bin/env python3
"""
cratehold -- private sparse-index crate registry on object storage.

Usage:
  python main.py --objstore my-bucket --rules rules.yaml
  python main.py --addr 0.0.0.0:8080 --objstore my-bucket --rules rules.yaml
  python main.py --objstore my-bucket --objstore-endpoint http://localhost:9000 --rules rules.yaml

Environment variables (flags override them):
  ADDR               Listen address, host:port. Default 127.0.0.1:8080.
  OBJSTORE           Bucket name. Required.
  OBJSTORE_ENDPOINT  Endpoint URL for S3-compatible stores. Optional.
  RULES              Path to the YAML rules file. Required.
  GITHUB_API_URL     GitHub API base URL. Default https://api.github.com.
  LOG_LEVEL          Default INFO.

AWS credentials and region come from the usual boto3 sources (env vars,
shared config, instance role).
"""

import argparse
import os
import sys

import uvicorn

from core.config import get_settings

_FLAG_ENV = {
    "addr": "ADDR",
    "objstore": "OBJSTORE",
    "objstore_endpoint": "OBJSTORE_ENDPOINT",
    "rules": "RULES",
}


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="cratehold",
        description="Private crate registry serving a sparse index from an object store.",
    )
    parser.add_argument("--addr", metavar="HOST:PORT", help="Listen address (env ADDR)")
    parser.add_argument("--objstore", metavar="BUCKET", help="Bucket holding index, crates and owners (env OBJSTORE)")
    parser.add_argument(
        "--objstore-endpoint",
        metavar="URL",
        help="Custom endpoint for S3-compatible stores (env OBJSTORE_ENDPOINT)",
    )
    parser.add_argument("--rules", metavar="PATH", help="YAML file with per-crate read/write rules (env RULES)")
    args = parser.parse_args()

    # Settings is read again inside the server process; the environment is
    # the one channel both sides share.
    for attr, env in _FLAG_ENV.items():
        value = getattr(args, attr)
        if value is not None:
            os.environ[env] = value
    get_settings.cache_clear()

    try:
        settings = get_settings()
        host, port = settings.host_port
    except ValueError as e:
        print(f"  [!] {e}", file=sys.stderr)
        sys.exit(2)

    uvicorn.run("asgi:app", host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
