from __future__ import annotations

import argparse
import sys

import uvicorn

from app.bootstrap import StartupError, build_pipeline
from app.config import get_settings
from app.main import create_app
from app.observability.logging import get_logger


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Correlated logs, traces and metrics demo service")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    args = parser.parse_args()

    try:
        pipeline = build_pipeline(settings)
    except StartupError as exc:
        sys.stderr.write(f"fatal: {exc}\n")
        raise SystemExit(1) from exc

    app = create_app(settings=settings, pipeline=pipeline)
    get_logger("app").info(f"Starting server on {args.host}:{args.port}")
    # log_config=None keeps the handlers installed by configure_logging.
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
