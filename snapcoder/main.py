#!/usr/bin/env python3
"""
snapcoder - website screenshots that always fit a size budget

- capture <url>: one screenshot (visible, fullpage, or selection)
- batch <file>: one screenshot per URL in a plaintext list
- Full-page mode scrolls the page first so lazy content is loaded
- Screenshots over --max-bytes are re-encoded/downscaled to fit
- Progress with ETA for batches, per-URL failures do not stop the run
"""

import argparse
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from playwright.sync_api import sync_playwright

from snapcoder.compress import compress
from snapcoder.errors import SnapcoderError
from snapcoder.fullpage import capture_full_page
from snapcoder.renderer import NAV_TIMEOUT_MS, open_renderer, parse_headless
from snapcoder.types import DEFAULT_MAX_BYTES, DEFAULT_MAX_PIXELS, CompressionResult, SizeBudget

MODES = ("visible", "fullpage", "selection")
DEFAULT_DIR = "snapcoder"

# ---------- time & formatting ----------

def run_timestamp() -> str:
    # UTC, e.g. 2025-10-06 14:23:05Z -> "2025-10-06_14-23-05"
    return datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")

def _fmt_eta(seconds: Optional[float]) -> str:
    if seconds is None or seconds != seconds or seconds < 0:
        return "estimating…"
    seconds = int(round(seconds))
    h, r = divmod(seconds, 3600)
    m, s = divmod(r, 60)
    if h > 0:
        return f"{h:d}h {m:02d}m {s:02d}s"
    return f"{m:d}m {s:02d}s"

def _fmt_kb(size: int) -> str:
    return f"{size / 1024:.1f} KB"

# ---------- helpers ----------

def ensure_scheme(url: str) -> str:
    if not re.match(r"^https?://", url, flags=re.I):
        return "https://" + url
    return url

def domain_label(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    host = host.replace("www.", "", 1) if host.startswith("www.") else host
    return host.split(".")[0] or "screenshot"

def default_filename(url: str, out_dir: Path) -> Path:
    return out_dir / f"snapcoder_{domain_label(url)}_{run_timestamp()}.png"

def parse_selection(value: Optional[str]) -> dict:
    if not value:
        raise ValueError("Selection coordinates required for selection mode (--selection x,y,width,height)")
    parts = [p.strip() for p in value.split(",")]
    try:
        x, y, width, height = (int(p) for p in parts)
    except ValueError:
        raise ValueError(f"Selection must be four integers x,y,width,height (got {value!r})") from None
    if width <= 0 or height <= 0:
        raise ValueError("Selection width and height must be positive")
    return {"x": x, "y": y, "width": width, "height": height}

def output_path_for(path: Path, result: CompressionResult) -> Path:
    """Swap the suffix when the compressor changed the encoding."""
    suffix = "." + result.extension
    if path.suffix.lower() == suffix or (suffix == ".jpg" and path.suffix.lower() == ".jpeg"):
        return path
    return path.with_suffix(suffix)

def parse_url_list_file(path: Path) -> List[str]:
    raw = path.read_text(encoding="utf-8", errors="ignore")
    return [line.strip() for line in raw.splitlines() if line.strip() and not line.strip().startswith("#")]

# ---------- core capture ----------

def take_screenshot(renderer, mode: str, selection: Optional[dict] = None):
    if mode == "visible":
        print("📸 Taking visible area screenshot...")
        return renderer.screenshot(full_page=False)
    if mode == "fullpage":
        print("📸 Taking full page screenshot...")
        geometry, raw = capture_full_page(renderer)
        print(f"📏 Page dimensions: {geometry.width}x{geometry.height}px")
        return raw
    if mode == "selection":
        print(f"📸 Taking selection screenshot ({selection['x']},{selection['y']} "
              f"{selection['width']}x{selection['height']})...")
        return renderer.screenshot(clip=selection)
    raise ValueError(f"Unknown mode: {mode}")

def report_compression(result: CompressionResult, raw_size: int):
    if result.stage == "passthrough":
        return
    if result.fallback:
        print(f"⚠️  Could not compress screenshot, keeping original: {result.diagnostic}")
        return
    detail = f"quality {result.quality}" + (f", scale {result.scale}" if result.scale else "")
    print(f"🗜️  Compressed {_fmt_kb(raw_size)} → {_fmt_kb(result.size)} ({detail}, "
          f"{result.width}x{result.height})")
    if result.best_effort:
        print(f"⚠️  Best effort only: {result.diagnostic}")

def capture_url(playwright, url: str, output: Optional[Path], mode: str = "fullpage",
                width: int = 1920, height: int = 1080, wait_ms: int = 2000, headless: bool = True,
                selection: Optional[str] = None, budget: Optional[SizeBudget] = None) -> Tuple[Path, CompressionResult]:
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode}")
    clip = parse_selection(selection) if mode == "selection" else None
    url = ensure_scheme(url)

    print(f"📍 URL: {url}")
    print(f"📐 Mode: {mode}")
    print(f"🖥️  Browser: {width}x{height}")

    with open_renderer(playwright, width=width, height=height, headless=headless) as renderer:
        print("⏳ Loading page...")
        renderer.goto(url, timeout_ms=NAV_TIMEOUT_MS)
        if wait_ms > 0:
            print(f"⏳ Waiting {wait_ms}ms...")
            renderer.wait(wait_ms)
        raw = take_screenshot(renderer, mode, clip)

    result = compress(raw, budget or SizeBudget())
    report_compression(result, len(raw.buffer))

    if output is None:
        output = default_filename(url, Path.cwd() / DEFAULT_DIR)
    path = output_path_for(Path(output), result)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(result.buffer)
    print(f"✅ Screenshot saved: {path}")
    print(f"📊 File size: {_fmt_kb(result.size)}")
    return path, result

# ---------- orchestration ----------

def run_batch(urls: List[str], out_dir: Path, **capture_kwargs) -> Tuple[List[Path], List[Tuple[str, str]]]:
    out_dir.mkdir(parents=True, exist_ok=True)
    total = len(urls)
    saved: List[Path] = []
    failed: List[Tuple[str, str]] = []
    print(f"📋 Found {total} URLs")

    t_batch_start = time.time()
    completed = 0
    avg_per_item: Optional[float] = None

    with sync_playwright() as p:
        for idx, u in enumerate(urls, start=1):
            eta = (total - completed) * avg_per_item if avg_per_item is not None else None
            pct = int(idx / max(total, 1) * 100)
            print(f"\n[{idx}/{total}] {pct:3d}%  ETA {_fmt_eta(eta)}")
            print(f"   {u}")

            t0 = time.time()
            try:
                path, _ = capture_url(p, u, default_filename(ensure_scheme(u), out_dir), **capture_kwargs)
                saved.append(path)
                print(f"   ✓ captured in {_fmt_eta(time.time() - t0)}")
            except (SnapcoderError, ValueError, OSError) as e:
                failed.append((u, str(e)))
                print(f"❌ Error with {u}: {e}", file=sys.stderr)

            completed += 1
            avg_per_item = (time.time() - t_batch_start) / completed

    print(f"\n✅ Batch capture completed in {_fmt_eta(time.time() - t_batch_start)}! "
          f"Screenshots saved to: {out_dir}")
    if failed:
        print(f"{len(failed)} of {total} URLs failed")
    return saved, failed

# ---------- CLI ----------

def _add_common(sp: argparse.ArgumentParser):
    sp.add_argument("-m", "--mode", choices=MODES, default="fullpage", help="Screenshot mode (default: fullpage).")
    sp.add_argument("-w", "--width", type=int, default=1920, help="Browser width (default 1920).")
    sp.add_argument("-H", "--height", type=int, default=1080, help="Browser height (default 1080).")
    sp.add_argument("--wait", type=int, default=2000, help="Wait time in ms after page load (default 2000).")
    sp.add_argument("--headless", default="true", help="Headless mode: true, false, or new (default true).")
    sp.add_argument("--selection", default=None, help="Selection coordinates for selection mode (x,y,width,height).")
    sp.add_argument("--max-bytes", type=int, default=DEFAULT_MAX_BYTES,
                    help=f"Maximum output file size in bytes (default {DEFAULT_MAX_BYTES}).")
    sp.add_argument("--max-pixels", type=int, default=DEFAULT_MAX_PIXELS,
                    help="Pixel count above which screenshots are downscaled before re-encoding.")

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="snapcoder", description="CLI tool for creating website screenshots.")
    sub = ap.add_subparsers(dest="command", required=True)

    cap = sub.add_parser("capture", help="Take a screenshot of a website")
    cap.add_argument("url", help="Website URL (with or without http/https)")
    cap.add_argument("-o", "--output", default=None, help="Output file path (default: auto-generated)")
    _add_common(cap)

    bat = sub.add_parser("batch", help="Take screenshots of multiple websites from a file")
    bat.add_argument("file", help="File with URLs (one per line)")
    bat.add_argument("-o", "--output-dir", default=f"./{DEFAULT_DIR}", help="Output directory (default ./snapcoder)")
    _add_common(bat)
    return ap

def capture_kwargs_from_args(args) -> dict:
    return dict(
        mode=args.mode,
        width=args.width,
        height=args.height,
        wait_ms=args.wait,
        headless=parse_headless(args.headless),
        selection=args.selection,
        budget=SizeBudget(max_bytes=args.max_bytes, max_pixels=args.max_pixels),
    )

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        kwargs = capture_kwargs_from_args(args)
        if args.command == "capture":
            print("🚀 Starting SnapCoder CLI...")
            output = Path(args.output) if args.output else None
            with sync_playwright() as p:
                capture_url(p, args.url, output, **kwargs)
            return 0

        print("🚀 Starting batch capture...")
        urls = parse_url_list_file(Path(args.file))
        if not urls:
            raise ValueError(f"No URLs found in list: {args.file}")
        run_batch(urls, Path(args.output_dir), **kwargs)
        return 0
    except (SnapcoderError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

if __name__ == "__main__":
    sys.exit(main())
