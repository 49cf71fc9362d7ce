"""
Handles the parallel processing of a batch of files.
This class contains the ProcessPoolExecutor and is used by the CLI.
"""
import logging
import os
import concurrent.futures
from pathlib import Path
from typing import Callable

from .pipeline import ConversionPipeline
from ..utils.config import ConversionConfig
from ..utils.logger import setup_worker_logger
from ..utils.structures import FileReport

# The main logger is configured by the entry point (CLI)
# We just get it here to write high-level status updates from the main process
log = logging.getLogger("lexhtml")

WorkerResult = tuple[Path, FileReport | None, str, Exception | None]


def _convert_single_file(path: Path, config: ConversionConfig) -> WorkerResult:
    """
    Target for the executor. Runs the pipeline on a single file and
    captures all its log output.

    Returns:
        tuple[Path, FileReport | None, str, Exception | None]:
            - The path of the processed file.
            - Output path, node count and diagnostics; None on failure.
            - The captured log output as a string.
            - An exception object if one occurred, else None.
    """
    log_stream, log_handler = setup_worker_logger()
    worker_log = logging.getLogger("lexhtml")

    try:
        worker_log.info(f"Converting: {path.name}")
        report = ConversionPipeline(config).convert_file(path)
        worker_log.info(f"Successfully finished conversion for: {path.name}")
        return path, report, log_stream.getvalue(), None

    except Exception as e:
        # Full traceback goes to the worker's buffer, the main process
        # only receives a picklable built-in exception.
        worker_log.error(f"Failed conversion for: {path.name}", exc_info=True)
        safe_exc = RuntimeError(f"{type(e).__name__}: {e}")
        return path, None, log_stream.getvalue(), safe_exc

    finally:
        log_handler.close()
        log_stream.close()


class BatchProcessor:
    """Orchestrates the conversion of multiple files in parallel."""

    def __init__(self, config: ConversionConfig):
        self.config = config


    def run(self, files: list[Path],
            progress_callback: Callable[[Path, FileReport | None, Exception | None], None] | None = None
            ) -> list[WorkerResult]:
        """
        Processes a list of files in parallel using ProcessPoolExecutor.

        Args:
            files: A list of Path objects to convert.
            progress_callback: A function to be called as each file completes.
                               It receives the (path, report, exception).

        Returns the worker results in the original file order.
        """
        th = self.config.num_threads
        max_workers = th if th > 0 else (os.cpu_count() or 1)
        log.info(f"Starting batch processing with up to {max_workers} workers.")

        # Map paths to their original index to maintain order
        path_to_index = {path: i for i, path in enumerate(files)}
        ordered_results: list[WorkerResult | None] = [None] * len(files)

        with concurrent.futures.ProcessPoolExecutor(max_workers) as executor:
            future_to_path = {
                executor.submit(_convert_single_file, path, self.config): path
                for path in files
            }

            for future in concurrent.futures.as_completed(future_to_path):
                path = future_to_path[future]
                idx = path_to_index[path]

                try:
                    p, report, log_string, exc = future.result()
                    ordered_results[idx] = (p, report, log_string, exc)
                except Exception as e:
                    # The worker itself failed (e.g., the process died)
                    log.error(f"Critical worker failure for {path.name}: {e}", exc_info=True)
                    report, exc = None, e
                    ordered_results[idx] = (path, None, f"CRITICAL FAILURE: {e}\n", e)

                if progress_callback:
                    progress_callback(path, report, exc)

        log.info("Batch processing complete. Writing ordered logs...")
        self._replay_logs(ordered_results)
        return [r for r in ordered_results if r is not None]


    @staticmethod
    def _replay_logs(ordered_results: list[WorkerResult | None]):
        """Writes buffered worker logs into the main log file in input order."""
        file_handler = next(
            (h for h in log.handlers if isinstance(h, logging.FileHandler)), None
        )

        for result in ordered_results:
            if result is None:
                log.error("Missing result in ordered list.")
                continue

            path, _, log_string, _ = result
            if file_handler and log_string:
                try:
                    file_handler.stream.write(f"\n--- Log for {path.name} ---\n")
                    file_handler.stream.write(log_string)
                    file_handler.stream.write(f"--- End log for {path.name} ---\n")
                except (OSError, ValueError) as e:
                    log.error(f"Failed to write buffered log for {path.name}: {e}")

        log.info("Ordered log writing complete.")
