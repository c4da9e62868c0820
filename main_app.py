# -*- coding: utf-8 -*-
"""
Personal Mix - Main Application
Generates personal playlists from listening history for every configured playlist
"""
import argparse
import logging
import os
import signal
import sys
import uuid
from dataclasses import replace
from typing import Optional

import numpy as np

from personal_mix.config_loader import Config
from personal_mix.local_library_client import LocalHistoryStore, LocalLibraryClient
from personal_mix.logging_utils import add_logging_args, configure_logging, redact, resolve_log_level
from personal_mix.playlist.batch_builder import BatchResult, run_playlist_batch
from personal_mix.playlist.errors import CancellationToken

logger = logging.getLogger("personal_mix.app")


class PersonalMixApp:
    """Main application orchestrator"""

    def __init__(self, config_path: str = "config.yaml", random_seed: Optional[int] = None):
        self.config_path = config_path
        self.config = Config(config_path)

        self.library = LocalLibraryClient(db_path=self.config.library_database_path)
        self.settings = self.config.settings
        seed = random_seed if random_seed is not None else self.config.random_seed
        self.rng = np.random.default_rng(seed)
        self.cancel_token = CancellationToken()
        self.history: Optional[LocalHistoryStore] = None

    def _open_history(self) -> LocalHistoryStore:
        self.history = LocalHistoryStore(self.config.history_database_path)
        return self.history

    def run(self, dry_run: bool = False, parallel_strategies: bool = False) -> BatchResult:
        """Generate every configured playlist"""
        settings = self.settings
        if parallel_strategies:
            settings = replace(settings, recommender=replace(settings.recommender, parallel=True))

        return run_playlist_batch(
            self.config.playlist_configs,
            history_factory=self._open_history,
            catalog=self.library,
            users=self.library,
            writer=self.library,
            settings=settings,
            cancel_token=self.cancel_token,
            rng=self.rng,
            dry_run=dry_run,
        )

    def install_signal_handlers(self) -> None:
        """Ctrl+C requests cancellation at the next phase boundary"""
        def _handle(signum, frame):
            logger.warning("Cancellation requested; stopping at the next phase boundary")
            self.cancel_token.cancel()
        signal.signal(signal.SIGINT, _handle)

    def close(self) -> None:
        if self.history is not None:
            self.history.close()
        self.library.close()


def main(argv=None) -> int:
    """Entry point"""
    parser = argparse.ArgumentParser(
        description="Generate personal playlists from listening history and similarity"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to config.yaml (default: config.yaml)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for exploration sampling and shuffling (default: config run.random_seed)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Generate playlists without saving them to the library"
    )
    parser.add_argument(
        "--parallel-strategies",
        action="store_true",
        help="Run the four recommendation strategies on a thread pool"
    )
    add_logging_args(parser)
    args = parser.parse_args(argv)

    try:
        app = PersonalMixApp(config_path=args.config, random_seed=args.seed)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 2

    # Explicit CLI flags win over logging.level from config.yaml
    cli_overrides = args.debug or args.quiet or args.log_level != 'INFO'
    configure_logging(
        level=resolve_log_level(args) if cli_overrides else app.config.log_level,
        log_file=args.log_file or app.config.log_file,
        run_id=uuid.uuid4().hex[:8],
        force=True,
    )
    logger.info(f"Loaded configuration from {redact(os.path.abspath(app.config_path))}")
    app.install_signal_handlers()

    try:
        batch = app.run(dry_run=args.dry_run, parallel_strategies=args.parallel_strategies)
    finally:
        app.close()

    if batch.aborted:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
