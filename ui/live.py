# ui/live.py
import argparse
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from itknows.config import OptimiserConfig, resolve_config
from itknows.control.advice import StatusColor
from itknows.control.history import export_history_csv, render_chart
from itknows.control.optimiser import OptimiserSession
from itknows.feedback.emitter import available_emitters, build_emitter
from itknows.io.hr_source import available_sources, create_source
from itknows.logbuffer import LogBuffer, configure_logging


_ANSI = {
    StatusColor.NEUTRAL:   "\033[90m",
    StatusColor.POSITIVE:  "\033[32m",
    StatusColor.ATTENTION: "\033[33m",
}
_RESET = "\033[0m"

HELP = """commands:
  s        start / stop recording
  1..5     set sensitivity (bpm)
  h        toggle feedback cues
  g        show heart-rate chart
  r        reconnect HR source
  l        print session log
  w        save session log
  c        clear session log
  q        quit"""


def build_parser():
    p = argparse.ArgumentParser(
        prog="itknows live",
        description="Live heart-rate guided rhythm coach (BLE heart-rate strap)."
    )
    p.add_argument("--source", choices=available_sources(), help="HR source (default from config: ble).")
    p.add_argument("--device", type=str, help="BLE name or address of the HR strap.")
    p.add_argument("--scan-timeout", type=float, help="BLE discovery timeout in seconds.")
    p.add_argument("--sim-bpm", type=float, default=140.0, help="Simulated source: centre BPM.")
    p.add_argument("--sim-seed", type=int, default=None, help="Simulated source: noise seed.")

    p.add_argument("--sensitivity", type=float, help="Noise band in bpm: 1, 2, 3, 4 or 5 (default 3).")
    p.add_argument("--emitter", choices=available_emitters(), help="Feedback cue output.")
    p.add_argument("--volume", type=float, help="Tone cue volume, 0..1.")
    p.add_argument("--no-haptics", action="store_true", help="Start with feedback cues off.")

    p.add_argument("--autostart", action="store_true", help="Start recording immediately.")
    p.add_argument("--duration", type=float, default=None,
                   help="Run unattended for N seconds (implies --autostart, no keyboard).")

    p.add_argument("--config", default="configs/defaults.yaml", help="Path to defaults.yaml.")
    p.add_argument("--logs-dir", help="Where saved session logs go.")
    p.add_argument("--history-csv", help="Export the HR history here on exit.")
    p.add_argument("--log-level", choices=["INFO", "DEBUG"], default="INFO")
    return p


def _overrides_from_args(args) -> dict:
    o = {"optimiser": {}, "feedback": {}, "source": {}, "logging": {}}
    if args.sensitivity is not None: o["optimiser"]["sensitivity"] = float(args.sensitivity)
    if args.emitter: o["feedback"]["emitter"] = args.emitter
    if args.volume is not None: o["feedback"]["volume"] = min(max(float(args.volume), 0.0), 1.0)
    if args.no_haptics: o["feedback"]["haptics_enabled"] = False
    if args.source: o["source"]["name"] = args.source
    if args.device: o["source"]["device"] = args.device
    if args.scan_timeout is not None: o["source"]["scan_timeout_sec"] = float(args.scan_timeout)
    if args.logs_dir: o["logging"]["logs_dir"] = args.logs_dir
    if args.history_csv: o["logging"]["history_csv"] = args.history_csv
    return o


class StatusPrinter:
    """Observer: prints a status line whenever advice, colour or recording changes."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self._last = None

    def __call__(self, session):
        key = (session.recording, session.rhythm_advice, session.status_color)
        if key == self._last:
            return
        self._last = key
        colour = _ANSI[session.status_color]
        hr = f"{session.current_hr:.0f}" if session.current_hr > 0 else "--"
        self.stream.write(
            f"{colour}{session.rhythm_advice}{_RESET}   HR: {hr} bpm   "
            f"sens={session.sensitivity:g}  cues={'on' if session.haptics_enabled else 'off'}\n"
        )
        self.stream.flush()


class DisconnectWarner:
    """
    Disconnect handler for an HR source: stops recording and tells the user
    how to reconnect. Runs on the source's thread.
    """

    def __init__(self, session, stream=None):
        self.session = session
        self.stream = stream or sys.stdout

    def __call__(self, name):
        if self.session.recording:
            self.session.toggle_recording()
        self.stream.write(f"[WARN] {name or 'HR source'} disconnected. Type 'r' to reconnect.\n")
        self.stream.flush()


def _reconnect(source, session) -> bool:
    if source is None:
        print("[WARN] No HR source to reconnect.")
        return False
    print("[INFO] Reconnecting ...")
    try:
        source.disconnect()
        source.connect(session.set_hr)
    except Exception as e:
        print(f"[ERROR] Could not reconnect: {e}")
        return False
    print(f"[INFO] Connected to: {source.connected_name}")
    return True


def _handle_command(cmd, session, logbuf, logs_dir, source=None) -> bool:
    """Apply one keyboard command. Returns False to quit."""
    cmd = cmd.strip().lower()
    if not cmd:
        return True
    if cmd == "q":
        return False
    if cmd == "s":
        session.toggle_recording()
    elif cmd in {"1", "2", "3", "4", "5"}:
        session.set_sensitivity(float(cmd))
    elif cmd == "h":
        session.set_haptics_enabled(not session.haptics_enabled)
        print(f"[INFO] Feedback cues {'on' if session.haptics_enabled else 'off'}")
    elif cmd == "g":
        print(render_chart(session.hr_history))
    elif cmd == "r":
        _reconnect(source, session)
    elif cmd == "l":
        print(logbuf.text)
    elif cmd == "w":
        out = logbuf.save(logs_dir)
        print(f"[OK] Session log written to: {out}" if out else "[WARN] Log is empty; nothing to save.")
    elif cmd == "c":
        logbuf.clear()
        print("[INFO] Session log cleared.")
    else:
        print(HELP)
    return True


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    logbuf = LogBuffer().attach()

    try:
        cfg = resolve_config(args.config, _overrides_from_args(args))
        opt_cfg = OptimiserConfig.from_dict(cfg)
    except ValueError as e:
        print(f"[ERROR] Bad configuration: {e}")
        logbuf.detach()
        sys.exit(2)

    src_cfg = cfg["source"]
    fb_cfg = cfg["feedback"]
    logs_dir = Path(cfg["logging"]["logs_dir"])

    emitter = build_emitter(fb_cfg["emitter"], volume=float(fb_cfg["volume"]))
    session = OptimiserSession(config=opt_cfg, emitter=emitter)
    session.subscribe(StatusPrinter())

    if src_cfg["name"] == "sim":
        source = create_source("sim", start_bpm=args.sim_bpm, seed=args.sim_seed)
    else:
        source = create_source(src_cfg["name"], device=src_cfg["device"],
                               scan_timeout=float(src_cfg["scan_timeout_sec"]))

    source.set_disconnect_handler(DisconnectWarner(session))

    print(f"[INFO] Connecting to {src_cfg['device'] or src_cfg['name']} ...")
    try:
        source.connect(session.set_hr)
    except Exception as e:
        print(f"[ERROR] Could not connect to HR source: {e}")
        source.close()
        session.close()
        logbuf.detach()
        sys.exit(2)
    print(f"[INFO] Connected to: {source.connected_name}")

    try:
        if args.duration is not None:
            session.toggle_recording()
            deadline = time.monotonic() + max(0.0, float(args.duration))
            while time.monotonic() < deadline:
                time.sleep(0.2)
        else:
            if args.autostart:
                session.toggle_recording()
            print(HELP)
            while True:
                try:
                    line = input()
                except EOFError:
                    break
                if not _handle_command(line, session, logbuf, logs_dir, source):
                    break
    except KeyboardInterrupt:
        pass
    finally:
        if session.recording:
            session.toggle_recording()
        session.close()
        try:
            source.disconnect()
        finally:
            source.close()

        history_csv = cfg["logging"]["history_csv"]
        if history_csv:
            out = export_history_csv(session.hr_history, history_csv)
            print(f"[OK] HR history written to: {out}")
        logbuf.detach()


if __name__ == "__main__":
    main()
