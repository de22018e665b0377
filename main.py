"""
Entry point for the legacy HTML -> rich-text conversion tool.

Uso:
  python main.py docs/*.html --output data/converted --workers 4
"""

import argparse
import glob
import os

from html2rich.migration_tool import CONFIG_FILE, ConversionTool


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert legacy HTML documents to canonical rich-text JSON."
    )
    parser.add_argument(
        "inputs",
        nargs="*",
        help="HTML files or directories (default: every .html file under docs/)",
    )
    parser.add_argument(
        "--output",
        default="data/converted",
        help="Directory for the <name>.json results",
    )
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Converter configuration bundle (JSON)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail documents that contain quarantined content",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of documents converted concurrently",
    )
    return parser.parse_args()


def collect_inputs(inputs):
    paths = []
    for item in inputs or ["docs/"]:
        if os.path.isdir(item):
            paths.extend(sorted(glob.glob(os.path.join(item, "**", "*.htm*"), recursive=True)))
        else:
            paths.extend(sorted(glob.glob(item)) or [item])
    return paths


def main():
    """
    Main function to run the conversion tool.
    """
    args = parse_args()
    tool = ConversionTool(config_file=args.config)
    if args.strict:
        tool.config = tool.config.model_copy(update={"strict_quarantine": True})
    tool.log_message("Starting HTML to rich-text conversion.")

    paths = collect_inputs(args.inputs)
    tool.log_message(f"Discovered input files: {paths}", level="DEBUG")
    if not paths:
        tool.log_message("No HTML files found to convert.", level="ERROR")
        return

    tool.convert_files(paths, args.output, workers=max(1, args.workers))
    tool.log_message("Conversion process finished.")


if __name__ == "__main__":
    main()
