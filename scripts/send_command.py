#!/usr/bin/env python3
"""
Command-line client for a running Taulas bridge.

Example
python3 scripts/send_command.py --host http://127.0.0.1:8585 relay/1
python3 scripts/send_command.py --host http://127.0.0.1:8585 --alert-url http://angharad.local/api
"""
from __future__ import annotations

import argparse
import json

import requests


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="http://127.0.0.1:8585")
    ap.add_argument("--prefix", default="taulas", help="url prefix of the bridge")
    ap.add_argument("--alert-url", default=None, help="set the alert callback url instead of sending a command")
    ap.add_argument("command", nargs="?", default=None, help="device command, e.g. NAME or relay/1")
    args = ap.parse_args()

    base = args.host.rstrip("/") + "/" + args.prefix.strip("/")
    if args.alert_url:
        r = requests.get(base + "/alertCb", params={"url": args.alert_url}, timeout=10)
    elif args.command:
        r = requests.get(base, params={"command": args.command}, timeout=30)
    else:
        ap.error("give a command or --alert-url")

    try:
        body = r.json()
    except ValueError:
        body = r.text
    print(json.dumps(body, indent=2) if not isinstance(body, str) else body)
    return 0 if r.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
