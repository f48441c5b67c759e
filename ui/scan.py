# ui/scan.py
import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from itknows.io.ble_bridge import scan_devices


def main(argv=None):
    p = argparse.ArgumentParser(prog="itknows scan", description="List nearby BLE devices.")
    p.add_argument("--timeout", type=float, default=8.0, help="Scan duration in seconds.")
    p.add_argument("--all", action="store_true", help="Include devices without a heart-rate service.")
    args = p.parse_args(argv)

    print(f"Scanning {args.timeout:g}s...")
    try:
        devices = scan_devices(timeout=args.timeout, hr_only=not args.all)
    except Exception as e:
        print(f"[ERROR] Scan failed: {e}")
        sys.exit(2)

    if not devices:
        print("No devices found.\nEnsure HR strap is on.")
        return
    for address, name in devices:
        print(f"\t{address} -> {name}")


if __name__ == "__main__":
    main()
