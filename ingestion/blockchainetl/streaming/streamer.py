# MIT License
#
# Copyright (c) 2018 Evgeny Medvedev, evge.medvedev@gmail.com
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.


import asyncio
import os
from typing import Any, Optional

from config.settings import settings
from utils.file_utils import atomic_write, delete_silently, smart_open
from utils.logger_utils import get_logger

logger = get_logger("Streamer")


class Streamer:
    def __init__(
        self,
        blockchain_streamer_adapter: Any,
        last_synced_block_file: str = settings.streamer.last_synced_block_file,
        lag: int = 0,
        start_block: Optional[int] = None,
        end_block: Optional[int] = None,
        period_seconds: int = settings.streamer.period_seconds,
        block_batch_size: int = settings.streamer.block_batch_size,
        retry_errors: bool = settings.streamer.retry_errors,
        pid_file: Optional[str] = None,
    ):
        """
        Polls the chain head and hands consecutive block ranges to an adapter.

        Args:
            blockchain_streamer_adapter: Object with async open/close/get_current_block_number/export_all.
            last_synced_block_file: File holding the last block whose events were fully processed.
            lag: Number of blocks to stay behind the chain head.
            start_block: First block to process. Must not be combined with an existing last_synced_block_file.
            end_block: Last block to process. Streams indefinitely when None.
            period_seconds: Sleep between cycles when there is nothing new.
            block_batch_size: Maximum number of blocks handed to the adapter per cycle.
            retry_errors: Retry a failed cycle instead of raising.
            pid_file: Optional PID file created while streaming.
        """
        self.blockchain_streamer_adapter = blockchain_streamer_adapter
        self.last_synced_block_file = last_synced_block_file
        self.lag = lag
        self.start_block = start_block
        self.end_block = end_block
        self.period_seconds = period_seconds
        self.block_batch_size = block_batch_size
        self.retry_errors = retry_errors
        self.pid_file = pid_file

        if self.start_block is not None or not os.path.isfile(self.last_synced_block_file):
            self._init_last_synced_block_file((self.start_block or 0) - 1)

        self.last_synced_block = self._read_last_synced_block()

    async def stream(self) -> None:
        try:
            if self.pid_file is not None:
                logger.info(f"Creating pid file {self.pid_file}")
                atomic_write(self.pid_file, str(os.getpid()))

            await self.blockchain_streamer_adapter.open()
            await self._do_stream()
        except asyncio.CancelledError:
            logger.info("Streamer has been cancelled. Finalizing...")
            raise
        finally:
            await self.blockchain_streamer_adapter.close()

            if self.pid_file is not None:
                logger.info(f"Deleting pid file {self.pid_file}")
                delete_silently(self.pid_file)

    async def _do_stream(self) -> None:
        while self.end_block is None or self.last_synced_block < self.end_block:
            synced_blocks = 0

            try:
                synced_blocks = await self._sync_cycle()
            except Exception:
                logger.exception("An exception occurred while syncing Governor events.")
                if not self.retry_errors:
                    raise

            if synced_blocks <= 0:
                logger.info(f"Nothing to sync. Sleeping for {self.period_seconds} seconds...")
                await asyncio.sleep(self.period_seconds)

    async def _sync_cycle(self) -> int:
        """Processes one block range. Returns the number of blocks synced."""
        current_block = await self.blockchain_streamer_adapter.get_current_block_number()

        target_block = self._calculate_target_block(current_block, self.last_synced_block)
        blocks_to_sync = max(target_block - self.last_synced_block, 0)

        logger.info(
            f"Current block {current_block}, target block {target_block}, "
            f"last synced block {self.last_synced_block}, blocks to sync {blocks_to_sync}"
        )

        if blocks_to_sync != 0:
            await self.blockchain_streamer_adapter.export_all(self.last_synced_block + 1, target_block)
            # Progress is recorded only after the adapter has checkpointed its state
            self._write_last_synced_block(target_block)
            self.last_synced_block = target_block

        return blocks_to_sync

    def _calculate_target_block(self, current_block: int, last_synced_block: int) -> int:
        target_block = current_block - self.lag
        target_block = min(target_block, last_synced_block + self.block_batch_size)
        target_block = min(target_block, self.end_block) if self.end_block is not None else target_block
        return target_block

    def _init_last_synced_block_file(self, start_block: int) -> None:
        if os.path.isfile(self.last_synced_block_file) and self.start_block is not None:
            raise ValueError(
                f"'{self.last_synced_block_file}' should not exist if --start-block option is specified. "
                "Either remove the file or the --start-block option to resume from the file."
            )
        self._write_last_synced_block(start_block)

    def _read_last_synced_block(self) -> int:
        with smart_open(self.last_synced_block_file, "r") as last_synced_block_file:
            return int(last_synced_block_file.read().strip())

    def _write_last_synced_block(self, last_synced_block: int) -> None:
        atomic_write(self.last_synced_block_file, str(last_synced_block) + "\n")
