"""
main.py — Command-line entry point of annosmell.

Runs the feature-annotation metric pipeline over a directory of srcML files:
1. Loads the configuration (YAML file, command-line flags, LOG_LEVEL).
2. Sets up console/file logging and the dedicated metrics error log.
3. Indexes all files and computes per-function metrics in parallel threads.
4. Writes the metrics as JSON.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable

from annosmell import calculate_metrics
from annosmell.config import AnalysisConfig, parse_level
from annosmell.errors import ConfigError

LOG_DIR = Path.cwd() / "logs"
LOG_FORMAT = "[%(threadName)s] %(asctime)s %(levelname)s %(name)s %(module)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int | str | None = None, log_dir: Path | None = None) -> logging.Logger:
    """Configure root console + app file logging and a dedicated metrics error logger.

    - Uses the given level, or LOG_LEVEL from the environment.
    - Adds `<log_dir>/app.log` for all module logs.
    - Ensures `metrics_error_logger` writes to `<log_dir>/metrics_errors.log`.
    """
    log_dir = log_dir or LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    final_level = parse_level(level) if level is not None else AnalysisConfig().log_level

    root = logging.getLogger()
    root.setLevel(final_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        root.addHandler(logging.StreamHandler())
    for h in root.handlers:
        if type(h) is logging.StreamHandler:
            h.setLevel(final_level)
            h.setFormatter(formatter)

    # Add app file handler once
    app_path = (log_dir / "app.log").resolve()
    if not any(isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == str(app_path)
               for h in root.handlers):
        app_fh = logging.FileHandler(app_path, encoding="utf-8")
        app_fh.setLevel(final_level)
        app_fh.setFormatter(formatter)
        root.addHandler(app_fh)

    # Dedicated metrics error logger
    metrics_logger = logging.getLogger("metrics_error_logger")
    metrics_err_path = (log_dir / "metrics_errors.log").resolve()
    if not any(isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == str(metrics_err_path)
               for h in metrics_logger.handlers):
        fh = logging.FileHandler(metrics_err_path, encoding="utf-8")
        fh.setLevel(logging.ERROR)
        fh.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s in %(name)s %(module)s:%(lineno)d: %(message)s",
                datefmt=DATE_FORMAT,
            )
        )
        metrics_logger.addHandler(fh)
    metrics_logger.propagate = True
    metrics_logger.setLevel(logging.ERROR)

    return metrics_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute feature-annotation metrics per C function from srcML files"
    )
    parser.add_argument("input_dir", nargs="?", help="Directory containing the srcML (.xml) files")
    parser.add_argument("-c", "--config", help="YAML configuration file")
    parser.add_argument("-o", "--output", dest="output_path", help="Path of the JSON metrics file")
    parser.add_argument("--workers", type=int, help="Number of parallel worker threads")
    parser.add_argument("--log-level", help="Log level name or number (default: $LOG_LEVEL or INFO)")
    parser.add_argument("--log-dir", type=Path, help="Directory for app.log and metrics_errors.log")
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    try:
        config = AnalysisConfig.load(args.config).with_overrides(
            input_dir=args.input_dir,
            output_path=args.output_path,
            workers=args.workers,
            log_level=args.log_level,
        ).validate()
    except ConfigError as e:
        setup_logging(args.log_level, args.log_dir)
        logging.error(str(e))
        return 2

    setup_logging(config.log_level, args.log_dir)
    if config.output_path is None:
        config = config.with_overrides(
            output_path=str(Path.cwd() / "data" / "metrics" / f"{Path(config.input_dir).resolve().name}.json"))

    logging.info("Running metrics for %s ...", config.input_dir)
    summary = calculate_metrics.run(config)
    if not summary.ok:
        logging.warning("%d file(s) failed, see metrics_errors.log: %s",
                        len(summary.failures), ", ".join(sorted(summary.failures)))
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
