"""HTTP server runner for the checkout API.

Usage:
    python src/server.py                      # Serve on 0.0.0.0:8000
    python src/server.py --port 9000 --reload # Development server
"""

import argparse

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Storefront checkout API server")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind (default: 8000)")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes (default: 1)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    uvicorn.run(
        "app:app",
        host=args.host,
        port=args.port,
        workers=None if args.reload else args.workers,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
