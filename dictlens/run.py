import argparse
import logging
import os

import uvicorn


def main(argv: list[str] | None = None) -> None:
    """
    Entry point for the CLI.

    - Uses the current working directory (or a provided path) as the workspace root.
    - Starts the FastAPI server editors talk to.
    """
    parser = argparse.ArgumentParser(
        prog="dictlens",
        description=(
            "Dictionary usage analysis server for editor integrations. "
            "By default, serves the current working directory."
        ),
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the workspace to analyze (default: current directory).",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface to bind the server to (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000).",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Logging level (default: info).",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    target_path = os.path.abspath(args.path)
    if not os.path.isdir(target_path):
        raise SystemExit(f"Path is not a directory: {target_path}")

    # Change working directory so the app picks this path as its workspace root.
    os.chdir(target_path)
    print(f"📂 Serving workspace at: {target_path}")

    url = f"http://{args.host}:{args.port}"
    print(f"🚀 Starting server at {url}")
    print("   Press Ctrl+C to stop.")

    uvicorn.run(
        "dictlens.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
