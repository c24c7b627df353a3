"""Narrative engine — dev launcher.

Starts the key-value service that RemoteStorage talks to, checks a content
pack for dangling references, or lists the saves in the configured storage.
"""

import argparse
import asyncio
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
KV_PORT = os.getenv("KV_PORT", "13013")


def check_content(path: Path) -> int:
    from narrative_engine.content import ContentError, ContentIndex

    try:
        index = ContentIndex.load(path)
    except ContentError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    problems = index.find_problems()
    for problem in problems:
        print(problem)
    print(f"{len(index.scenes())} scenes, {len(index.scripts())} scripts, {len(problems)} problems")
    return 1 if problems else 0


async def list_saves() -> int:
    from narrative_engine.config import load_config
    from narrative_engine.storage import StorageError, create_storage

    config = load_config(ROOT / ".env")
    storage = create_storage(config)
    if not await storage.is_available():
        print(f"error: storage unavailable ({type(storage).__name__})", file=sys.stderr)
        return 2
    try:
        saves = await storage.get_all_saves()
    except StorageError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    for save in saves:
        print(f"{save.id}  {save.player.name}  {save.current_phase}  {save.updated_at}")
    print(f"{len(saves)} saves")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Narrative engine dev launcher")
    parser.add_argument("--check", type=Path, default=None, metavar="PACK",
                        help="Validate a content pack JSON file and exit")
    parser.add_argument("--saves", action="store_true",
                        help="List saves in the configured storage and exit")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    if args.check:
        sys.exit(check_content(args.check))
    if args.saves:
        sys.exit(asyncio.run(list_saves()))

    print(f"Starting KV service on http://localhost:{KV_PORT} ...")
    proc = subprocess.Popen(
        ["uvicorn", "backend.app:app", "--reload", "--host", HOST, "--port", KV_PORT],
        cwd=ROOT,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
