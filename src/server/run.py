"""CLI entry point for launching the FastAPI app with uvicorn."""

import argparse

import uvicorn


def main() -> None:
    """Run the development server."""
    parser = argparse.ArgumentParser(description="Todo List API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args()

    uvicorn.run(
        "src.server.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        reload_dirs=["src"] if args.reload else None,
    )


if __name__ == "__main__":
    main()
