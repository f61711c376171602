#!/usr/bin/env python3
"""
Exam platform API launcher

Usage:
    python run.py [--host HOST] [--port PORT] [--reload] [--no-sweeper]

Examples:
    python run.py
    python run.py --port 8080
    python run.py --host 0.0.0.0 --port 8000 --reload
"""

import argparse
import os
import sys

import uvicorn


def main():
    """Start the API server"""
    parser = argparse.ArgumentParser(description="Exam platform API")
    parser.add_argument("--host", default="localhost", help="host address (default: localhost)")
    parser.add_argument("--port", type=int, default=8000, help="port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="reload on code changes")
    parser.add_argument("--no-sweeper", action="store_true", help="do not run the in-process expiry sweeper")

    args = parser.parse_args()

    # settings are read at import time, so the environment must be set first
    if args.no_sweeper:
        os.environ["SWEEP_ENABLED"] = "false"

    print("=" * 60)
    print("Exam platform API")
    print("=" * 60)
    print(f"Host: {args.host}")
    print(f"Port: {args.port}")
    print(f"Reload: {'on' if args.reload else 'off'}")
    print(f"Expiry sweeper: {'off' if args.no_sweeper else 'on (unless SWEEP_ENABLED=false)'}")
    print(f"URL: http://{args.host}:{args.port}")
    print("=" * 60)

    try:
        uvicorn.run(
            "exam_platform.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
        )
    except KeyboardInterrupt:
        print("\nStopped")
        sys.exit(0)


if __name__ == "__main__":
    main()
