"""Post a hand-made alert to a running webhook (smoke test for a deployment)."""

from dotenv import load_dotenv

load_dotenv()

import argparse
import json
import os

import requests


def main() -> None:
    p = argparse.ArgumentParser(description=__doc__)
    p.add_argument("alert_name", help='e.g. SmartOpen, SmartClose, "Buyer domination"')
    p.add_argument("symbol")
    p.add_argument("price")
    p.add_argument("--timeframe", default=None)
    p.add_argument("--volume", type=float, default=None)
    p.add_argument(
        "--url",
        default=os.getenv("ALERTBOT_WEBHOOK_URL", "http://127.0.0.1:8000/webhook").strip(),
    )
    args = p.parse_args()

    payload = {"alertName": args.alert_name, "symbol": args.symbol, "price": args.price}
    if args.timeframe:
        payload["timeframe"] = args.timeframe
    if args.volume is not None:
        payload["volume"] = args.volume

    r = requests.post(args.url, json=payload, timeout=10)
    print(r.status_code)
    try:
        print(json.dumps(r.json(), indent=2, ensure_ascii=False)[:2000])
    except ValueError:
        print(r.text[:800])


if __name__ == "__main__":
    main()
