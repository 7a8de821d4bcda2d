
#!/usr/bin/env python3
import argparse

from resolutions.orchestrator import run_once


def main():
    parser = argparse.ArgumentParser(description="Bundle resolutions CLI")
    parser.add_argument("--events", required=True, help="Path to recorded host events (JSON array or JSON lines)")
    parser.add_argument("--config", help="Path to YAML config")
    parser.add_argument("--package", dest="packages", action="append", help="Package name to resolve a single copy for (repeatable)")
    parser.add_argument("--all", dest="all_packages", action="store_true", help="Resolve every package with more than one copy")
    parser.add_argument("--rewrite", dest="rewrite", action="store_true", help="Rewrite deduped rows into stubs")
    parser.add_argument("--no-rewrite", dest="rewrite", action="store_false", help="Only annotate deduped rows")
    parser.add_argument("--out", dest="out", help="Write the JSON report here instead of stdout")
    parser.set_defaults(rewrite=None, all_packages=False)
    args = parser.parse_args()

    overrides = {
        "packages": args.packages,
        "all_packages": args.all_packages,
        "rewrite": args.rewrite,
        "out": args.out,
    }

    text = run_once(args.config, args.events, overrides=overrides)
    if text is not None:
        print(text)


if __name__ == "__main__":
    main()
