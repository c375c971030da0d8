from __future__ import annotations

import argparse
import contextlib
import copy
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

from .build_config import BuildConfig, load_build_config
from .context import BuildCtx
from .errors import CacheError, DependencyError
from .lib.cache import ArtifactCache
from .lib.command import CommandRunner
from .lib.deps import validate_dependencies
from .lib.fs import FilesystemOps
from .lib.resolve import ReleaseResolver, make_client
from .logging_utils import configure_logging, console_level
from .pipeline import PipelineResult, run_pipeline
from .version import InvalidVersionError, validate_version

logger = logging.getLogger(__name__)


DEFAULT_BUILD_CONFIG = "build_config.yaml"
DEFAULT_BUILD_LOG = "/var/log/iso-builder.log"


def apply_overrides(
    cfg: BuildConfig,
    *,
    output_dir: Optional[str] = None,
    cache_dir: Optional[str] = None,
    no_cache: bool = False,
) -> BuildConfig:
    raw = copy.deepcopy(cfg.raw)
    if output_dir:
        raw["paths"] = dict(raw.get("paths") or {}, output_dir=output_dir)
    if cache_dir:
        raw["cache"] = dict(raw.get("cache") or {}, dir=cache_dir)
    if no_cache:
        raw["cache"] = dict(raw.get("cache") or {}, enabled=False)
    return BuildConfig(raw=raw)


def open_cache(cfg: BuildConfig, *, runner: CommandRunner, fs: FilesystemOps) -> Optional[ArtifactCache]:
    if not cfg.cache_enabled:
        logger.info("Artifact cache disabled")
        return None
    cache = ArtifactCache(Path(cfg.cache_dir).absolute(), runner=runner, fs=fs, verify=cfg.cache_verify)
    try:
        cache.init()
    except (CacheError, OSError) as e:
        logger.warning("Artifact cache unavailable, building without it: %s", e)
        return None
    logger.info("Using artifact cache at %s", cache.root)
    return cache


def run_build(
    *,
    cfg: BuildConfig,
    version: str,
    build_dir: Optional[str] = None,
    runner: Optional[CommandRunner] = None,
    resolver: Optional[ReleaseResolver] = None,
) -> PipelineResult:
    """Run the full pipeline for ``version`` in a scratch directory.

    The scratch directory is always removed afterwards; it survives only if
    removing it fails.
    """

    validate_version(version)

    runner = runner or CommandRunner()
    fs = FilesystemOps(runner)

    scratch = Path(build_dir or cfg.build_dir or tempfile.mkdtemp(prefix="iso-builder-")).resolve()
    fs.remove_all(scratch)
    fs.mkdir_all(scratch)
    logger.info("Build directory: %s", scratch)

    cache = open_cache(cfg, runner=runner, fs=fs)

    with contextlib.ExitStack() as stack:
        if resolver is None:
            client = stack.enter_context(make_client(cfg.user_agent))
            resolver = ReleaseResolver(client, api_base=cfg.github_api_base, org=cfg.github_org)

        ctx = BuildCtx(
            cfg=cfg,
            version=version,
            build_dir=scratch,
            output_dir=Path(cfg.output_dir).absolute(),
            runner=runner,
            fs=fs,
            resolver=resolver,
            cache=cache,
        )
        try:
            return run_pipeline(ctx)
        finally:
            if not fs.remove_all_with_retries(scratch):
                logger.warning("Build directory left in place: %s", scratch)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="iso-builder",
        description="Build the bootable installer ISO for a release version (X.Y.Z or vX.Y.Z).",
    )
    p.add_argument("version", nargs="?", help="Release version, e.g. 1.2.3 or v1.2.3")
    p.add_argument("--config", default=None, help=f"YAML build config (default: {DEFAULT_BUILD_CONFIG} if present)")
    p.add_argument("--log", default=DEFAULT_BUILD_LOG)
    p.add_argument("--build-dir", default=None, help="Scratch directory (default: a fresh temp dir)")
    p.add_argument("--output-dir", default=None)
    p.add_argument("--cache-dir", default=None)
    p.add_argument("--no-cache", action="store_true")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug output on the console")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show warnings and errors on the console")

    args = p.parse_args(argv)

    if not args.version:
        p.print_usage(sys.stderr)
        print("error: missing version argument", file=sys.stderr)
        return 1

    try:
        validate_version(args.version)
    except InvalidVersionError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if os.geteuid() != 0:
        print("error: iso-builder must be run as root", file=sys.stderr)
        return 1

    config_path = args.config
    if config_path is None and Path(DEFAULT_BUILD_CONFIG).exists():
        config_path = DEFAULT_BUILD_CONFIG
    try:
        cfg = load_build_config(config_path)
        cfg.validate()
        cfg = apply_overrides(cfg, output_dir=args.output_dir, cache_dir=args.cache_dir, no_cache=bool(args.no_cache))
    except (OSError, ValueError, RuntimeError) as e:
        print(f"error: cannot load build config: {e}", file=sys.stderr)
        return 1

    configure_logging(log_path=args.log, console=console_level(verbose=args.verbose, quiet=args.quiet))
    logger.info("=== Building %s ISO %s ===", cfg.identity.name, args.version)

    try:
        validate_dependencies(files=[cfg.splash_logo, cfg.isolinux_bin, cfg.ldlinux])
    except DependencyError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    result = run_build(cfg=cfg, version=args.version, build_dir=args.build_dir)

    if not result.ok:
        err = result.error
        print(f"error: build failed in phase '{err.phase}' at step '{err.step}' ({err.code}): {err.reason}", file=sys.stderr)
        return 1

    print(str(result.iso_path))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
