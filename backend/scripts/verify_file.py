"""
Verify one Drive file from the command line, printing progress as it streams.

Usage:
    python scripts/verify_file.py --radio 3 --drive-file-id 1AbC... "frase uno" "frase dos"
"""
import argparse
import asyncio
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from radiocheck.client import stream_verification  # noqa: E402
from radiocheck.core.security import create_access_token  # noqa: E402
from radiocheck.services.progress_stream import StreamError  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Stream a single verification")
    parser.add_argument("phrases", nargs="+")
    parser.add_argument("--radio", type=int, required=True)
    parser.add_argument("--drive-file-id")
    parser.add_argument("--audio-path")
    parser.add_argument("--user", default="cli")
    parser.add_argument("--base-url", default="http://localhost:8000")
    args = parser.parse_args()

    payload = {"radioId": args.radio, "phrases": args.phrases}
    if args.drive_file_id:
        payload["driveFileId"] = args.drive_file_id
    if args.audio_path:
        payload["audioPath"] = args.audio_path

    def show(frame):
        print(f"[{frame.percentage:3d}%] {frame.message}")

    try:
        result = asyncio.run(
            stream_verification(args.base_url, create_access_token(args.user), payload, on_progress=show)
        )
    except StreamError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
