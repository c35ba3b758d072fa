"""Print one wallet's PAYX balance, or the all-wallet dashboard as a table."""

import argparse
import json

import httpx


def print_dashboard(payload: dict) -> None:
    print(f"{'wallet':<44} {'payments':>8} {'usdc':>12} {'payx':>14}")
    for wallet in payload.get("wallets", []):
        print(
            f"{wallet['walletAddress']:<44} {wallet['paymentCount']:>8} "
            f"{wallet['totalUsdc']:>12.2f} {wallet['totalPayx']:>14,.0f}"
        )
    print(
        f"{'TOTAL':<44} {payload.get('totalPayments', 0):>8} "
        f"{payload.get('totalUsdc', 0):>12.2f} {payload.get('totalPayx', 0):>14,.0f}"
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Show PAYX balances from the ledger.")
    parser.add_argument("--api-url", default="http://localhost:8000")
    parser.add_argument("--wallet", default=None, help="show a single wallet instead of the dashboard")
    args = parser.parse_args()

    base = args.api_url.rstrip("/")
    if args.wallet:
        resp = httpx.get(f"{base}/balance/{args.wallet}", timeout=10.0)
        resp.raise_for_status()
        print(json.dumps(resp.json(), indent=2))
        return

    resp = httpx.get(f"{base}/dashboard", timeout=30.0)
    resp.raise_for_status()
    payload = resp.json()
    if not payload.get("success"):
        raise SystemExit(payload.get("error", "dashboard unavailable"))
    print_dashboard(payload)


if __name__ == "__main__":
    main()
