# -- coding: utf-8 --

"""Query a running jukebox service once and print the response."""

import argparse
import base64
import datetime
import json
import sys

import requests


def _format_ts() -> str:
	ts = datetime.datetime.now()
	return f"{ts:%Y-%m-%d %H:%M:%S}.{ts.microsecond // 1000:03d}"


def _save_data_url(data_url: str, path: str) -> int:
	_header, _sep, payload = data_url.partition(",")
	raw = base64.b64decode(payload)
	with open(path, "wb") as f:
		f.write(raw)
	return len(raw)


def main():
	p = argparse.ArgumentParser(description="Fetch record metadata or label analysis from the service")
	p.add_argument('identifier', help='archive.org identifier or details URL')
	p.add_argument('--url', default='http://127.0.0.1:3000', help='Service base URL')
	p.add_argument('--analysis', action='store_true', help='Call /api/analysis instead of /api/record')
	p.add_argument('--save-label', default='', help='Write the returned label PNG here (with --analysis)')
	p.add_argument('--timeout', type=float, default=30.0, help='Request timeout in seconds')
	args = p.parse_args()

	endpoint = "analysis" if args.analysis else "record"
	url = f"{args.url.rstrip('/')}/api/{endpoint}/{args.identifier}"
	print(f"{_format_ts()} GET {url}")
	resp = requests.get(url, timeout=args.timeout)
	payload = resp.json()
	print(f"{_format_ts()} STATUS {resp.status_code}")
	if not resp.ok:
		print(f"error: {payload.get('error')}")
		sys.exit(1)

	if args.analysis and args.save_label and payload.get("labelImage"):
		size = _save_data_url(payload["labelImage"], args.save_label)
		print(f"{_format_ts()} SAVED {args.save_label} ({size} bytes)")
	for key in ("labelImage", "debugImage"):
		if payload.get(key):
			payload[key] = f"<{len(payload[key])} chars>"
	print(json.dumps(payload, indent=2))


if __name__ == "__main__":
	main()
