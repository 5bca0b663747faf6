import yaml
from .compiler import Compiler
from .config import ConfigError, load_config
from .watcher import run_watcher, trigger_recompile
import argparse
import logging
import sys
import time

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
                        prog='wieldymarkup',
                        description='Compiles WieldyMarkup files to HTML, recompiling them when they change',
                        epilog='The config file lists write: [{src, dst}] pairs and optional watch globs')
    parser.add_argument('config')
    parser.add_argument('--once', action='store_true', help='compile once and exit instead of watching')
    parser.add_argument('--compress', action='store_true', help='strip whitespace between tags')
    parser.add_argument('--verbose', action='store_true', help='log debug output')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(message)s',
                        datefmt='%Y-%m-%d %H:%M:%S')

    if args.once:
        try:
            cfg = load_config(args.config)
        except (OSError, yaml.YAMLError, ConfigError) as e:
            logger.error("Error: %s", e)
            return 1
        compiler = Compiler(compress=cfg.compress or args.compress, embedding_token=cfg.embedding_token)
        return 1 if trigger_recompile(cfg.write_pairs, compiler) else 0

    while True:
        try:
            cfg = load_config(args.config)
            cfg.compress = cfg.compress or args.compress
            return 0 if run_watcher(cfg) else 1
        except (OSError, yaml.YAMLError, ConfigError) as e:
            logger.error("Error: %s", e)
            logger.error("Please check your configuration and try again, attempting to reload in 3 seconds...")
            time.sleep(3)


if __name__ == '__main__':
    sys.exit(main())
