#!/usr/bin/env python3
"""
CLI tool to start the practicum scheduling FastAPI web server.

Usage:
    python3 web_server.py                    # Start with defaults
    python3 web_server.py --host 0.0.0.0     # Listen on all interfaces
    python3 web_server.py --port 8080        # Use custom port
    python3 web_server.py --reload           # Enable auto-reload for development
    python3 web_server.py --create-tables    # Create tables at startup (SQLite dev)

Environment Variables:
    PRACTICUM_DB_URL: Database URL (PostgreSQL, or sqlite:///./practicum.db for development)
    PRACTICUM_CREATE_TABLES: Create tables at startup instead of running migrations
    PRACTICUM_ENV: Environment (production/development, default: development)
    PRACTICUM_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)

Example:
    # Local development against SQLite
    export PRACTICUM_DB_URL="sqlite:///./practicum.db"
    python3 web_server.py --reload --create-tables

    # Production server (schema managed by `alembic upgrade head`)
    python3 web_server.py --host 0.0.0.0 --port 8080
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def load_env_file() -> None:
    """
    Load environment variables from backend/.env file.

    Explicit environment variables take precedence over .env values.
    """
    env_path = Path(__file__).parent / "backend" / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def check_database_url() -> None:
    """Warn when PRACTICUM_DB_URL is not set and the default URL will be used."""
    if not os.environ.get("PRACTICUM_DB_URL"):
        print(
            "\nWARNING: PRACTICUM_DB_URL is not set; using the default local PostgreSQL URL."
            "\nFor local development set, for example:"
            "\n  export PRACTICUM_DB_URL='sqlite:///./practicum.db'\n",
            file=sys.stderr
        )


def parse_arguments() -> argparse.Namespace:
    """
    Parse command-line arguments.

    Arguments:
        --host: Host to bind (default: 127.0.0.1)
        --port: Port to bind (default: 8000)
        --reload: Enable auto-reload for development (default: False)
        --create-tables: Create all tables at startup (default: False)
    """
    parser = argparse.ArgumentParser(
        description="Start the practicum scheduling FastAPI web server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start development server with auto-reload
  python3 web_server.py --reload

  # Start server on all interfaces (accessible from network)
  python3 web_server.py --host 0.0.0.0

Environment Variables:
  PRACTICUM_DB_URL          Database URL
  PRACTICUM_CREATE_TABLES   Create tables at startup
  PRACTICUM_ENV             Environment (production/development)
  PRACTICUM_LOG_LEVEL       Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        """
    )

    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1). "
             "Use 0.0.0.0 to listen on all interfaces."
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind the server to (default: 8000)"
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development. Not recommended for production."
    )

    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create all tables at startup instead of relying on Alembic migrations."
    )

    return parser.parse_args()


def main() -> None:
    """
    Main entry point for the web server CLI tool.

    Exit Codes:
        0: Server stopped normally
    """
    args = parse_arguments()

    # Ensure the repo root is on sys.path so "backend.src.main" is importable
    repo_root = str(Path(__file__).parent)
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)

    load_env_file()
    check_database_url()

    if args.create_tables:
        os.environ["PRACTICUM_CREATE_TABLES"] = "true"

    print("\nStarting practicum scheduling web server...")
    print(f"Host: {args.host}")
    print(f"Port: {args.port}")
    print(f"Auto-reload: {'enabled' if args.reload else 'disabled'}")
    print(f"\nAPI documentation: http://{args.host}:{args.port}/docs")
    print(f"Health check: http://{args.host}:{args.port}/health")
    print("\nPress CTRL+C to stop the server\n")

    try:
        uvicorn.run(
            "backend.src.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level="info",
        )
    except KeyboardInterrupt:
        print("\n\nServer stopped by user (CTRL+C)")
        sys.exit(0)


if __name__ == "__main__":
    main()
