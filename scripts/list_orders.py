"""Log in as admin and print the order ledger."""

import argparse
import json
import os

import httpx


def main() -> None:
    """CLI entrypoint for exporting orders."""

    parser = argparse.ArgumentParser(description="Print all orders recorded by the backend.")
    parser.add_argument("--base-url", default="http://localhost:3000")
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    args = parser.parse_args()
    if not args.password:
        parser.error("--password or ADMIN_PASSWORD is required")

    with httpx.Client(base_url=args.base_url, timeout=10.0) as client:
        login = client.post("/api/admin/login", json={"password": args.password})
        login.raise_for_status()
        token = login.json()["token"]
        resp = client.get("/api/orders/admin", headers={"Authorization": f"Bearer {token}"})
        resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
