"""
Command line entry point: render a repository's history as a static site.

    rendergit-site [options] repository_path repository_name
"""

from __future__ import annotations

import argparse
import sys
import time
from typing import List, Optional

from .build import DEFAULT_OUTPUT_DIR, DEFAULT_STYLE_PATH, BuildConfig, BuildError, default_jobs, run
from .diff import DEFAULT_CONTEXT
from .git import GitError, GitRepository


def report_error(err: BaseException) -> int:
    print(f"\x1b[31;1merror: {err}\x1b[0m", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="rendergit-site",
        description="Render a git repository's commits, branches and refs as linked static HTML pages",
    )
    ap.add_argument("repository_path", help="Path to the git repository")
    ap.add_argument("repository_name", help="Name shown as the site's home link")
    ap.add_argument("--out", "-o", default=DEFAULT_OUTPUT_DIR, help=f"Output directory (default: {DEFAULT_OUTPUT_DIR})")
    ap.add_argument("--log-limit", "-l", type=int, default=0,
                    help="Limit on the number of commits in each branch log, 0 for no limit (default 0)")
    ap.add_argument("--style-path", "-s", default=DEFAULT_STYLE_PATH,
                    help=f"Stylesheet path relative to the output directory (default: {DEFAULT_STYLE_PATH})")
    ap.add_argument("-U", "--context", type=int, default=DEFAULT_CONTEXT, help="Diff context lines")
    ap.add_argument("--jobs", "-j", type=int, default=default_jobs(), help="Worker threads for page generation")
    ap.add_argument("--force", action="store_true", help="Regenerate every page even if it looks up to date")
    ap.add_argument("--verbose", "-v", action="store_true", help="Print progress to stderr")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_limit < 0 or args.context < 0:
        return report_error(ValueError("--log-limit and --context must not be negative"))

    config = BuildConfig(
        log_limit=args.log_limit,
        style_path=args.style_path,
        context_lines=args.context,
        jobs=args.jobs,
        force=args.force,
        verbose=args.verbose,
    )
    started = time.monotonic()
    try:
        if args.verbose:
            print(f"📁 Opening {args.repository_path}", file=sys.stderr)
        repo = GitRepository.open(args.repository_path)
        report = run(repo, args.repository_name, args.out, config)
    except (GitError, BuildError, OSError) as e:
        return report_error(e)

    if args.verbose:
        print(
            f"💾 {report.written} pages written, {report.skipped} skipped "
            f"in {time.monotonic() - started:.1f}s → {args.out}",
            file=sys.stderr,
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
