#!/usr/bin/env python3
"""
Push an inventory workbook to a running sync server.
The server replaces its watched file and the watcher syncs connected clients.
"""
import argparse
import logging
import os
import sys
from pathlib import Path

import requests

API_URL = os.environ.get("SYNC_API_URL", "http://localhost:3000")
ALLOWED_EXTENSIONS = {'.xlsx', '.xlsm', '.csv'}

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


def upload_file(filepath: Path, api_url: str = API_URL) -> bool:
    """Upload a file to the inventory upload endpoint."""
    logger.info(f"Uploading: {filepath.name}")

    try:
        with filepath.open('rb') as f:
            files = {'file': (filepath.name, f)}
            response = requests.post(
                f"{api_url}/api/inventory/upload",
                files=files,
                timeout=60
            )

        if response.status_code == 200:
            logger.info(f"Uploaded successfully: {response.json().get('message', '')}")
            return True
        else:
            logger.error(f"Upload failed ({response.status_code}): {response.text}")
            return False
    except requests.exceptions.ConnectionError:
        logger.error(f"Connection error - is the server running at {api_url}?")
        return False
    except requests.exceptions.RequestException as e:
        logger.error(f"Upload error: {e}")
        return False


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Upload an inventory workbook")
    parser.add_argument("file", type=Path, help="Workbook to upload (.xlsx, .xlsm or .csv)")
    parser.add_argument("--api-url", default=API_URL, help=f"Server base URL (default: {API_URL})")
    args = parser.parse_args(argv)

    if not args.file.is_file():
        logger.error(f"File not found: {args.file}")
        return 1
    if args.file.suffix.lower() not in ALLOWED_EXTENSIONS:
        logger.error(f"Unsupported file type: {args.file.suffix}")
        return 1

    return 0 if upload_file(args.file, args.api_url.rstrip('/')) else 1


if __name__ == "__main__":
    sys.exit(main())
