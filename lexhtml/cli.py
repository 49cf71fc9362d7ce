"""
Handles command-line argument parsing and initiates the conversion.
This is the entry point for the console script.
"""
import argparse
import logging
from pathlib import Path

from .core.assembler import validate_prefix
from .core.batch_processor import BatchProcessor
from .utils.config import BundleMode, ConversionConfig, DEFAULT_CSS_PREFIX, DEFAULT_TITLE
from .utils.logger import setup_main_logger
from .utils.structures import FileReport


# Get logger (will be configured in run_cli)
log = logging.getLogger("lexhtml")


def int_in_range(min_val, max_val):
    """Checks if value is an int in [min_val, max_val] range."""
    def checker(value):
        ivalue = int(value)
        if not (min_val <= ivalue <= max_val):
            raise argparse.ArgumentTypeError(f"Value must be between {min_val} and {max_val}, got {ivalue}")
        return ivalue
    return checker


def css_class(value):
    """Checks if value is usable as a CSS class name."""
    try:
        return validate_prefix(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lexhtml",
        description="Converts Lexical editor JSON documents to HTML.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("input_paths", type=Path, nargs="+",
                        help="Input .json files or/and folders separated by a space.")
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="Output folder or filename (for single input). If omitted, each output is placed next to the input file.")
    parser.add_argument("-b", "--bundle", choices=[m.name.lower() for m in BundleMode], default="document",
                        help="Output shape: bare fragment, styled block, styled block with script, or full page.")
    parser.add_argument("-p", "--prefix", type=css_class, default=DEFAULT_CSS_PREFIX,
                        help="CSS class of the content wrapper; stylesheet selectors are rewritten to it.")
    parser.add_argument("-m", "--minify", action="store_true", help="Minify the embedded CSS and JS.")
    parser.add_argument("-t", "--title", default=DEFAULT_TITLE, help="Page title (document bundle).")
    parser.add_argument("--lang", default="en", help="Page language (document bundle).")
    parser.add_argument("-c", "--css", type=Path, default=None,
                        help="Path to a custom CSS file.")
    parser.add_argument("-j", "--js", type=Path, default=None,
                        help="Path to a custom JS file.")
    parser.add_argument("--padding", type=int_in_range(0, 1000), default=20,
                        help="Padding around embedded drawings, in scene units.")
    parser.add_argument("--no-probe-images", action="store_true",
                        help="Do not read sizes of embedded data-URI images.")
    parser.add_argument("--threads", type=int, default="0",
                        help="Number of parallel processes to use for conversion. 0 to use max.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show info messages on the console.")
    return parser


def collect_files(input_paths: list[Path]) -> list[Path]:
    """Expands folders into the .json files they contain."""
    files_to_process = []
    for path in input_paths:
        if not path.exists():
            log.warning(f"Input path does not exist, skipping: {path}")
            continue
        if path.is_dir():
            files_to_process.extend(sorted(path.rglob("*.json")))
        elif path.is_file() and path.suffix.lower() == '.json':
            files_to_process.append(path)
    return files_to_process


def run_cli(argv: list[str] | None = None):
    """
    The main function for the command-line interface.
    Parses arguments and runs the conversion pipeline.
    """
    args = build_parser().parse_args(argv)

    console_level = logging.INFO if args.verbose else logging.ERROR
    setup_main_logger(console_level)
    log.info(f"Console logger set to level: {logging.getLevelName(console_level)}")

    files_to_process = collect_files(args.input_paths)
    if not files_to_process:
        log.warning("No .json files found to process.")
        return

    # Create configuration and run batch processor
    config = ConversionConfig(
        output_path=args.output,
        bundle_mode=BundleMode[args.bundle.upper()],
        css_prefix=args.prefix,
        minify=args.minify,
        title=args.title,
        lang=args.lang,
        custom_stylesheet=args.css,
        custom_script=args.js,
        scene_padding=args.padding,
        probe_image_size=not args.no_probe_images,
        num_threads=args.threads,
    )
    processor = BatchProcessor(config)

    num_files = len(files_to_process)
    log.info(f"Found {num_files} files. Starting conversion...")

    completed_count = 0
    def progress_callback(path: Path, report: FileReport | None, exc: Exception | None):
        nonlocal completed_count
        completed_count += 1
        # pad completed_count with spaces for alignment
        completed_str = str(completed_count).rjust(len(str(num_files)))
        prefix = f"[{completed_str}/{num_files}]"
        if exc:
            print(f"{prefix} ❌ Error: {path.name}", flush=True)
            print(f"  └─ {exc}", flush=True)
            # File log has the full trace from the worker
            log.error(f"Failed to convert {path.name}: {exc}", exc_info=False)
        elif report is not None and not report.ok:
            print(f"{prefix} ⚠️ Done with {len(report.errors)} diagnostics: {path.name}", flush=True)
            print(f"  ├─ nodes: {report.node_count}, errors: {len(report.errors)}", flush=True)
            for error in report.errors:
                print(f"  └─ {error}", flush=True)
        else:
            nodes = f" ({report.node_count} nodes)" if report is not None else ""
            print(f"{prefix} ✅ Done: {path.name}{nodes}", flush=True)

    processor.run(files_to_process, progress_callback)

    print("\nBatch conversion finished.")
