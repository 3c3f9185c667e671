from __future__ import annotations

import argparse
import sys

import uvicorn

from app.config import ConfigurationError, ensure_upstream_configured, get_settings
from app.observability.logging import configure_logging


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Pipedrive deals proxy")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    args = parser.parse_args()

    configure_logging(settings.log_level, json_output=settings.log_json)
    try:
        ensure_upstream_configured(settings)
    except ConfigurationError as exc:
        sys.exit(str(exc))

    uvicorn.run("app.main:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
