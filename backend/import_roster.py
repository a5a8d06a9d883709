"""
Roster Upload Script - sends a spreadsheet to the import endpoint.

Usage:
    python import_roster.py students.xlsx                          # Uses default URL
    python import_roster.py students.xlsx http://localhost:8000    # Custom API URL

The bearer token is read from the API_TOKEN environment variable.
"""

import mimetypes
import os
import sys

import httpx

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def upload(api_url: str, path: str, token: str, client: httpx.Client = None) -> dict:
    import_url = f"{api_url}/api/File/students/import"
    content_type = XLSX_MIME_TYPE if path.endswith(".xlsx") else (
        mimetypes.guess_type(path)[0] or "application/octet-stream")
    with open(path, "rb") as f:
        files = {"file": (os.path.basename(path), f, content_type)}
        # Large files are committed batch by batch before the response
        with (client or httpx.Client(timeout=300.0)) as http:
            resp = http.post(import_url, files=files,
                             headers={"Authorization": f"Bearer {token}"})
    if resp.status_code >= 400:
        try:
            error = resp.json().get("error", resp.text)
        except ValueError:
            error = resp.text
        print(f"HTTP Error {resp.status_code}: {error}")
        sys.exit(1)
    return resp.json()


def main():
    if len(sys.argv) < 2:
        print("Usage: python import_roster.py <file.xlsx|file.csv> [api_url]")
        sys.exit(2)

    path = sys.argv[1]
    api_url = sys.argv[2] if len(sys.argv) > 2 else os.getenv("API_URL", "http://localhost:8000")
    token = os.getenv("API_TOKEN", "")

    if not os.path.exists(path):
        print(f"Error: Could not find {path}")
        sys.exit(1)
    if not token:
        print("Error: API_TOKEN is not set")
        sys.exit(1)

    print(f"Uploading {path} to {api_url}")
    result = upload(api_url, path, token)
    summary = result.get("summary", {})

    print("=" * 60)
    print("IMPORT SUMMARY")
    print("=" * 60)
    print(f"  Total Rows: {summary.get('totalRows', '?')}")
    print(f"  Processed:  {summary.get('processed', '?')}")
    print(f"  Skipped:    {summary.get('skipped', '?')}")
    print("=" * 60)

    for error in summary.get("errors", []):
        print(f"  row {error.get('row', '?')}: {error.get('reason', '?')}")


if __name__ == "__main__":
    main()
