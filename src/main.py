"""
Face scan capture tool.

Captures a timed multi-pose face scan from a depth source, assembles a point
cloud, and uploads it to the scan processing backend (saving locally when
the upload fails).

Usage:
    python src/main.py scan --replay recordings/ --config config/config.yaml
    python src/main.py upload scan.ply
    python src/main.py inspect scan.ply

Commands:
    scan: Capture from recorded frames, then upload (or --no-upload to save locally)
    upload: Upload an existing PLY file and wait for processing
    inspect: Print a summary of a PLY file
"""

import os
import sys
import argparse
import logging
import yaml
import numpy as np
from typing import Dict, Any, Tuple, Optional

from capture.replay import ReplayConfig, ReplayFrameSource
from cloud.errors import UploadError
from cloud.uploader import ScanUploader
from models.config import CAPTURE_MODES, SELECTION_POLICIES, Config
from ops.logging import setup_logging
from pointcloud.ply import PlyFormatError, read_ply, serialize_ply
from runtime.context import ScanContext
from runtime.services import ScanSession

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_CAPTURE = 2
EXIT_UPLOAD = 3


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(EXIT_CONFIG)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['capture', 'acceptance', 'selection', 'assembly', 'upload', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Capture
    capture = config.get('capture') or {}
    mode = capture.get('mode', 'quick')
    if mode not in CAPTURE_MODES:
        return False, f"capture.mode must be one of: {', '.join(CAPTURE_MODES)}"
    for key in ('duration_s', 'interval_s'):
        if key in capture and (not _is_number(capture[key]) or capture[key] <= 0):
            return False, f"capture.{key} must be a positive number"
    if 'stride' in capture and (not isinstance(capture['stride'], int) or capture['stride'] < 1):
        return False, "capture.stride must be an integer >= 1"
    if 'jpeg_quality' in capture:
        quality = capture['jpeg_quality']
        if not isinstance(quality, int) or not (1 <= quality <= 100):
            return False, "capture.jpeg_quality must be an integer between 1 and 100"
    roi = capture.get('roi') or {}
    for key in ('radius_x', 'radius_y'):
        if key in roi and (not _is_number(roi[key]) or roi[key] <= 0):
            return False, f"capture.roi.{key} must be a positive number"

    # Acceptance
    acceptance = config.get('acceptance') or {}
    for key, value in acceptance.items():
        if not _is_number(value) or value < 0:
            return False, f"acceptance.{key} must be a non-negative number"

    # Scoring weights
    weights = (config.get('scoring') or {}).get('weights')
    if weights:
        for key, value in weights.items():
            if not _is_number(value) or value < 0:
                return False, f"scoring.weights.{key} must be a non-negative number"
        total = Config.from_dict(config).scoring.weights.total
        if abs(total - 1.0) > 1e-6:
            return False, f"scoring.weights must sum to 1 (got {total:g})"

    # Selection
    selection = config.get('selection') or {}
    policy = selection.get('policy')
    if policy is not None and policy not in SELECTION_POLICIES:
        return False, f"selection.policy must be one of: {', '.join(SELECTION_POLICIES)}"
    for key in ('center_count', 'left_count', 'right_count', 'total_target'):
        if key in selection and (not isinstance(selection[key], int) or selection[key] < 0):
            return False, f"selection.{key} must be a non-negative integer"

    # Assembly
    assembly = config.get('assembly') or {}
    budget = assembly.get('point_budget', 500_000)
    minimum = assembly.get('min_points', 1000)
    if not isinstance(budget, int) or budget <= 0:
        return False, "assembly.point_budget must be a positive integer"
    if not isinstance(minimum, int) or minimum < 0:
        return False, "assembly.min_points must be a non-negative integer"
    if budget < minimum:
        return False, "assembly.point_budget must be >= assembly.min_points"

    # Upload
    upload = config.get('upload') or {}
    if 'base_url' not in upload:
        return False, "Missing upload.base_url"
    if not isinstance(upload['base_url'], str) or not upload['base_url'].startswith(('http://', 'https://')):
        return False, "upload.base_url must be an http(s) URL"
    for key in ('request_timeout_s', 'poll_interval_s', 'poll_deadline_s'):
        if key in upload and (not _is_number(upload[key]) or upload[key] <= 0):
            return False, f"upload.{key} must be a positive number"

    # Logging
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def cmd_scan(args, config: Config) -> int:
    ctx = ScanContext(config=config)
    session = ScanSession(
        ctx,
        on_capture_state=lambda s: logging.info(f"Capture: {s.value}"),
        on_upload_state=lambda s: logging.info(f"Upload: {s.to_dict()}"),
    )
    replay = ReplayFrameSource(ReplayConfig(path=args.replay, fps=args.fps), ctx.store)
    try:
        replay.open()
    except RuntimeError as e:
        logging.error(str(e))
        return EXIT_CAPTURE

    try:
        report = session.run(upload=not args.no_upload, single_shot=args.single)
    except KeyboardInterrupt:
        logging.info("Scan interrupted by user")
        session.cancel()
        return EXIT_CAPTURE
    finally:
        replay.close()

    print(report.message)
    if report.succeeded:
        return EXIT_OK
    return EXIT_CAPTURE if report.capture is None else EXIT_UPLOAD


def cmd_upload(args, config: Config) -> int:
    try:
        points = read_ply(args.ply)
    except (OSError, PlyFormatError) as e:
        logging.error(f"Cannot read {args.ply}: {e}")
        return EXIT_UPLOAD

    with ScanUploader(config.upload, on_state=lambda s: logging.info(f"Upload: {s.to_dict()}")) as uploader:
        try:
            outcome = uploader.run(serialize_ply(points))
        except UploadError as e:
            print(e.message if not e.saved_path else f"{e.message}. Saved locally to {e.saved_path}")
            return EXIT_UPLOAD
    print(f"Scan {outcome.scan_id} is ready")
    return EXIT_OK


def cmd_inspect(args, config: Config) -> int:
    try:
        points = read_ply(args.ply)
    except (OSError, PlyFormatError) as e:
        logging.error(f"Cannot read {args.ply}: {e}")
        return EXIT_CONFIG

    print(f"{args.ply}: {len(points)} vertices")
    if len(points):
        lo = points.xyz.min(axis=0)
        hi = points.xyz.max(axis=0)
        print(f"  bounds min: {np.round(lo, 4).tolist()}")
        print(f"  bounds max: {np.round(hi, 4).tolist()}")
        print(f"  mean color: {np.round(points.rgb.mean(axis=0), 1).tolist()}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Face scan capture and upload')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    sub = parser.add_subparsers(dest='command', required=True)

    scan = sub.add_parser('scan', help='Capture a scan from recorded frames')
    scan.add_argument('--replay', type=str, required=True,
                      help='Directory of .npz recordings (or a single file)')
    scan.add_argument('--fps', type=float, default=15.0,
                      help='Replay frame rate')
    scan.add_argument('--mode', choices=CAPTURE_MODES,
                      help='Override capture.mode')
    scan.add_argument('--single', action='store_true',
                      help='Single-shot capture of the latest frame')
    scan.add_argument('--no-upload', action='store_true',
                      help='Save the point cloud locally instead of uploading')

    upload = sub.add_parser('upload', help='Upload an existing PLY file')
    upload.add_argument('ply', type=str)

    inspect = sub.add_parser('inspect', help='Summarize a PLY file')
    inspect.add_argument('ply', type=str)
    return parser


def main(argv=None) -> int:
    """Main application function."""
    args = build_parser().parse_args(argv)

    raw_config = load_config(args.config)
    if getattr(args, 'mode', None):
        raw_config.setdefault('capture', {})['mode'] = args.mode
        raw_config.get('selection', {}).pop('policy', None)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return EXIT_CONFIG

    setup_logging(raw_config['log_path'], raw_config['log_level'])
    config = Config.from_dict(raw_config)

    commands = {
        'scan': cmd_scan,
        'upload': cmd_upload,
        'inspect': cmd_inspect,
    }
    return commands[args.command](args, config)


if __name__ == "__main__":
    sys.exit(main())
