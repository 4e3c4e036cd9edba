"""Ask the backend to verify one payment reference and print the outcome JSON."""

import argparse
import json
from urllib.parse import quote

import httpx


def verify_url(base_url: str, reference: str) -> str:
    """Verify endpoint for a reference, escaped as one path segment."""

    return f"{base_url.rstrip('/')}/api/payments/verify/{quote(reference, safe='')}"


def main() -> None:
    """CLI entrypoint for operator-driven verification."""

    parser = argparse.ArgumentParser(description="Verify a payment reference against the gateway.")
    parser.add_argument("reference")
    parser.add_argument("--base-url", default="http://localhost:3000")
    args = parser.parse_args()

    resp = httpx.get(verify_url(args.base_url, args.reference), timeout=30.0)
    print(json.dumps(resp.json(), indent=2))
    if resp.status_code >= 400:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
