"""CLI entrypoint for the trafficviz pipeline."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .io_geo import LoadFailure, load_datasets
from .models import BuildManifest
from .pipeline import PipelineReport, format_summary_lines, run_pipeline, summarize_loads
from .report import write_report_index
from .util import (
    detect_git_commit,
    ensure_directories,
    format_report_lines,
    setup_logging,
    sha256_file,
    write_json,
)
from .validate import Validator

LOGGER = logging.getLogger("trafficviz.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trafficviz",
        description="Per-capita and network traffic load visualizations.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    build_p = subparsers.add_parser(
        "build", help="Load both datasets, export encodings and render figures."
    )
    add_common(build_p)
    build_p.add_argument(
        "--skip-render",
        action="store_true",
        help="Only write encodings.json; do not draw PNG figures.",
    )

    validate_p = subparsers.add_parser("validate", help="Validate config and input datasets.")
    add_common(validate_p)

    summary_p = subparsers.add_parser(
        "summary", help="Log the busiest regions by absolute and per-capita load."
    )
    add_common(summary_p)

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    setup_logging(cfg.paths.logs_dir / "build.log", verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report, success="Validation passed with no errors."):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_summary(cfg: AppConfig) -> int:
    try:
        regions, network = load_datasets(cfg)
    except LoadFailure as exc:
        LOGGER.error("Summary aborted: %s", exc)
        return 1
    for line in format_summary_lines(summarize_loads(regions, network, cfg)):
        LOGGER.info(line)
    return 0


def _run_build(cfg: AppConfig, *, skip_render: bool) -> int:
    LOGGER.info("Starting build pipeline.")
    report = run_pipeline(cfg, render=not skip_render)
    for line in format_report_lines(report, success="Pipeline completed with no errors."):
        LOGGER.info(line)
    if report.encoded is None:
        LOGGER.error("Build aborted: datasets could not be loaded, nothing was rendered.")
        return 1

    report_index: Path | None = None
    if cfg.build.write_report and not skip_render:
        report_index = write_report_index(
            title=cfg.project.title,
            outputs=report.artifacts,
            legend=report.encoded.legend,
            legend_title=cfg.legend.title,
            ranking=report.encoded.ranking,
            output_html=cfg.paths.output_dir / "index.html",
        )
        LOGGER.info("Report index generated at %s", report_index)

    if cfg.build.write_manifest:
        manifest_path = _write_manifest(cfg, report, report_index=report_index, skip_render=skip_render)
        LOGGER.info("Build manifest written to %s", manifest_path)

    if not report.ok:
        LOGGER.error("Build finished with errors.")
        return 1
    LOGGER.info("Build finished.")
    return 0


def _write_manifest(
    cfg: AppConfig,
    report: PipelineReport,
    *,
    report_index: Path | None,
    skip_render: bool,
) -> Path:
    artifacts = {name: str(path) for name, path in report.artifacts.items()}
    if report_index is not None:
        artifacts["report_index"] = str(report_index)
    render_status = "skipped" if skip_render else ("ok" if report.ok else "error")
    manifest = BuildManifest.create(
        config_hash_sha256=sha256_file(cfg.source_path),
        git_commit=detect_git_commit(cfg.source_path.parent),
        steps={
            "load": "ok",
            "encode": "ok",
            "export": "ok" if "encodings" in report.artifacts else "error",
            "render": render_status,
            "report_index": "ok" if report_index else "skipped",
        },
        artifacts=artifacts,
    )
    manifest_path = cfg.paths.output_dir / "build_manifest.json"
    write_json(manifest_path, manifest.to_dict())
    return manifest_path


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "build":
        return _run_build(cfg, skip_render=bool(args.skip_render))
    if command == "validate":
        return _run_validate(cfg)
    if command == "summary":
        return _run_summary(cfg)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
