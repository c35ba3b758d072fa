"""Trigger a chain-to-ledger sync on a running API and print the result JSON."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for manual or cron-driven syncs."""

    parser = argparse.ArgumentParser(description="Reconcile on-chain USDC payments into the ledger.")
    parser.add_argument("--api-url", default="http://localhost:8000")
    parser.add_argument("--api-key", default=None, help="value for the x-api-key header")
    parser.add_argument("--historical", action="store_true", help="walk the complete transfer history")
    args = parser.parse_args()

    path = "/sync-all-historical" if args.historical else "/sync-blockchain"
    headers = {"x-api-key": args.api_key} if args.api_key else {}
    resp = httpx.post(f"{args.api_url.rstrip('/')}{path}", headers=headers, timeout=120.0)
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
