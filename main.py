"""Pocket Chat — dev launcher. Starts the API server in watch mode."""

import argparse
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "127.0.0.1")
PORT = os.getenv("PORT", "13015")


def main():
    parser = argparse.ArgumentParser(description="Pocket Chat dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Settings storage directory (default: ./data)")
    parser.add_argument("--no-reload", action="store_true",
                        help="Disable auto-reload")
    args = parser.parse_args()

    # Build env for the server process so it picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    cmd = [
        sys.executable, "-m", "uvicorn", "pocket_chat.app:create_app", "--factory",
        "--host", HOST, "--port", PORT,
    ]
    if not args.no_reload:
        cmd.append("--reload")

    print(f"Starting API on http://{HOST}:{PORT} ...")
    try:
        return subprocess.call(cmd, cwd=ROOT, env=env)
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
