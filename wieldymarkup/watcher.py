from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
import logging
from pathlib import Path
from typing import Dict, List, Optional
from .compiler import Compiler, CompilerException
from .config import BuildConfig

logger = logging.getLogger(__name__)


def trigger_recompile(write_pairs: Dict[Path, Path], compiler: Compiler) -> List[Path]:
    """Compiles every source into its destination. Returns the sources that failed."""
    failed = []
    for (src, dst) in write_pairs.items():
        try:
            with open(src, "r") as f:
                html = compiler.compile(f.read())
        except (OSError, CompilerException) as e:
            logger.error("Could not compile %s: %s", src, e)
            failed.append(src)
            continue
        try:
            with open(dst, "w+") as f:
                f.write(html)
        except OSError as e:
            logger.error("Could not write %s: %s", dst, e)
            failed.append(src)
            continue
        logger.info("Wrote %s", dst)
    return failed


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, files_to_watch, write_pairs: Dict[Path, Path], compiler: Optional[Compiler] = None):
        self.files_to_watch = {x.resolve() for x in files_to_watch}  # Absolute paths (sources + watch paths)
        self.write_pairs = write_pairs
        self.compiler = compiler or Compiler()
        logger.info("Handler initialized. Monitoring for changes...")

    def on_modified(self, event):
        if event.is_directory:
            return

        # Resolve path and check if it's one we care about
        src_path_abs = Path(event.src_path).resolve()
        if src_path_abs in self.files_to_watch:
            logger.info("Detected modification in: %s", src_path_abs)
            trigger_recompile(self.write_pairs, self.compiler)


def run_watcher(config: BuildConfig) -> bool:
    """Sets up and runs the watchdog observer. Returns False if nothing could be watched."""
    files_to_watch = set(config.write_pairs.keys()) | config.watch_paths
    dirs_to_watch = {p.parent for p in files_to_watch}

    if not dirs_to_watch:
        logger.error("No valid directories provided to watch.")
        return False

    compiler = Compiler(compress=config.compress, embedding_token=config.embedding_token)
    event_handler = ChangeHandler(files_to_watch, write_pairs=config.write_pairs, compiler=compiler)
    observer = Observer()

    scheduled_count = 0
    for dir_path in dirs_to_watch:
        if not dir_path.is_dir():
            logger.warning("Directory '%s' does not exist. Cannot watch.", dir_path)
            continue

        # recursive=False: only events directly within this directory
        observer.schedule(event_handler, str(dir_path), recursive=False)
        scheduled_count += 1
        logger.info("Scheduled watcher for directory: %s", dir_path)

    if scheduled_count == 0:
        logger.error("No watchers were successfully scheduled. Exiting.")
        return False

    # Build once so outputs exist before the first change
    trigger_recompile(config.write_pairs, compiler)

    observer.start()
    logger.info("Watching for file changes in %d director%s. Press Ctrl+C to stop.",
                scheduled_count, 'y' if scheduled_count == 1 else 'ies')

    try:
        while observer.is_alive():
            observer.join(timeout=1)  # Wait for observer thread, check status periodically
    except KeyboardInterrupt:
        logger.info("Stopping watcher (Ctrl+C pressed)...")
    finally:
        if observer.is_alive():
            observer.stop()
        # Wait for the observer thread to fully finish shutting down
        observer.join()
        logger.info("Watcher stopped completely.")
    return True
