#!/usr/bin/env python
"""
Render an exported session into a small dashboard PNG.

Inputs:
- history CSV written by the live dashboard (`index,bpm`)
- optional session log (`itknows_log_<ms>.txt`, lines `ts | EVENT | details`)

Outputs:
- outputs/plots/session_hr.png

Usage:
  python tools/plot_session.py --history outputs/history.csv
  python tools/plot_session.py --history outputs/history.csv --log outputs/logs/itknows_log_1760000000000.txt
"""
from __future__ import annotations
import argparse
import sys
from pathlib import Path
import pandas as pd
import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from itknows.control.history import chart_bounds

EVENT_ORDER = ["TEST_START", "EVAL", "PLATEAU", "CUE"]

def load_history(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Missing: {path}")
    df = pd.read_csv(path)
    df.columns = [c.strip() for c in df.columns]
    if "bpm" not in df.columns:
        raise ValueError("history CSV missing required column: bpm")
    return df

def load_events(path: Path) -> pd.DataFrame:
    rows = []
    for line in path.read_text(encoding="utf-8").splitlines():
        parts = [p.strip() for p in line.split("|", 2)]
        if len(parts) == 3:
            rows.append({"ts": parts[0], "event": parts[1], "details": parts[2]})
    return pd.DataFrame(rows, columns=["ts", "event", "details"])

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--history", default="outputs/history.csv")
    ap.add_argument("--log", default=None)
    ap.add_argument("--outdir", default="outputs/plots")
    args = ap.parse_args()

    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    hist = load_history(Path(args.history))
    bpm = hist["bpm"].to_numpy(dtype=float)
    events = load_events(Path(args.log)) if args.log else None

    ncols = 2 if events is not None else 1
    fig, axes = plt.subplots(1, ncols, figsize=(5 * ncols + 2, 4), dpi=120, squeeze=False)
    axes = axes.ravel()

    ax = axes[0]
    ax.plot(np.arange(bpm.size), bpm, color="green", linewidth=2)
    lo, hi = chart_bounds(bpm)
    ax.set_ylim(lo, hi)
    ax.set_xlabel("sample (1 Hz)")
    ax.set_ylabel("bpm")
    ax.set_title("Heart rate (last 60 samples)")
    ax.grid(True, linestyle=":", alpha=0.5)

    if events is not None:
        counts = events["event"].value_counts()
        y = [int(counts.get(ev, 0)) for ev in EVENT_ORDER]
        x = np.arange(len(EVENT_ORDER))
        axes[1].bar(x, y)
        axes[1].set_xticks(x)
        axes[1].set_xticklabels(EVENT_ORDER)
        axes[1].set_title("Optimiser events")
        axes[1].grid(True, linestyle=":", alpha=0.5)

    fig.suptitle("itknows session", y=0.98)
    fig.tight_layout()
    out = outdir / "session_hr.png"
    fig.savefig(out)
    plt.close(fig)

    print(f"[OK] Wrote: {out}")

if __name__ == "__main__":
    main()
