# -- coding: utf-8 --

import argparse
import asyncio
import logging
import time

import cv2

from core.config import ConfigError, load_config, validate_config
from core.errors import DeviceAcquisitionError
from core.runtime import build_runtime_from_loaded_config


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="ChromaScan: find the red, green and blue QR codes in a video feed",
    )
    p.add_argument(
        "--config-dir", default="config", help="Directory containing main_*.yaml"
    )
    p.add_argument("--verbose", action="store_true", help="Debug log")
    p.add_argument(
        "--log-level", default="", help="Override log level (debug/info/warning/error)"
    )
    return p.parse_args(argv)


def setup_logging(verbose: bool, log_level: str = ""):
    if verbose:
        level = logging.DEBUG
    else:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "warn": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(str(log_level or "").strip().lower(), logging.INFO)
    # Use UTC for all %(asctime)s timestamps in logs.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level, format="%(asctime)sZ [%(levelname)s] %(message)s", force=True
    )
    if not verbose:
        for name in ("aiohttp.access", "aiohttp.server", "asyncio"):
            logging.getLogger(name).setLevel(logging.WARNING)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_level)
    try:
        cfg = load_config(args.config_dir)
        validate_config(cfg)
    except ConfigError as e:
        logging.error("Config invalid: %s", e)
        raise SystemExit(1) from e
    if int(cfg.runtime.opencv_num_threads) > 0:
        cv2.setNumThreads(int(cfg.runtime.opencv_num_threads))
    # Config-driven log level (unless overridden by CLI).
    if not args.verbose and not args.log_level:
        setup_logging(args.verbose, cfg.runtime.log_level)

    logging.info(
        "Starting: camera=%s decoder=%s segmentation=%s timeout=%dms hmi=%s",
        cfg.camera.type,
        cfg.decode.impl,
        "on" if cfg.isolate.segmentation_enabled else "off",
        cfg.scan.timeout_ms,
        f"{cfg.output.hmi.host}:{cfg.output.hmi.port}"
        if cfg.output.hmi.enabled
        else "off",
    )
    logging.info(
        "Config files: main=%s lookup=%s",
        cfg.paths.get("main"),
        cfg.paths.get("lookup"),
    )

    try:
        runtime = build_runtime_from_loaded_config(cfg)
    except (ConfigError, ValueError) as e:
        logging.error("Config invalid: %s", e)
        raise SystemExit(1) from e

    limit = float(cfg.runtime.max_runtime_s) or None
    try:
        progress = asyncio.run(runtime.run(runtime_limit_s=limit))
    except DeviceAcquisitionError as e:
        logging.error("Camera unavailable: %s", e)
        raise SystemExit(2) from e
    except KeyboardInterrupt:
        logging.info("Scan STOPPED by user (Ctrl+C)")
        return
    except Exception:
        logging.exception("Error")
        raise
    for result in runtime.coordinator.results:
        print(f"{result.channel.value.upper()}: {result.display_text} ({result.method.value})")
    logging.info("Done: %s", progress.state.value if progress else "not started")


if __name__ == "__main__":
    main()
