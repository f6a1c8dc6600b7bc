"""
Download executor: bounded pool of file transfers from the debrid cache
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import requests

from .errors import ConfigurationError, ErrorKind, TransientProviderError, TvloopError
from .realdebrid import RealDebridClient

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
PARTIAL_SUFFIX = ".downloading"


@dataclass
class DownloadTask:
    """One (link, destination) transfer"""

    link: str
    dest: Path
    key: str
    payload: Any = field(default=None, repr=False)


@dataclass
class TaskResult:
    task: DownloadTask
    success: bool
    error: str | None = None
    kind: ErrorKind | None = None


def failure_kind(error: Exception) -> ErrorKind:
    """Error kind of a failed transfer; network errors from requests are transient"""
    if isinstance(error, TvloopError):
        return error.kind
    if isinstance(error, requests.RequestException):
        return ErrorKind.TRANSIENT
    return ErrorKind.CONTENT


class DownloadExecutor:
    """
    Drains download tasks with at most max_workers transfers at a time

    A failed task is reported in its TaskResult and never cancels the
    other tasks. The caller passes its own active_transfers map; the
    executor registers each running transfer there (key -> destination)
    and removes it when the transfer ends.
    """

    def __init__(
        self,
        cache: RealDebridClient,
        max_workers: int = 3,
        timeout: float = 1800,
    ):
        self.cache = cache
        self.max_workers = max_workers
        self.timeout = timeout
        self._transfers_lock = threading.Lock()

    def run(
        self,
        tasks: list[DownloadTask],
        active_transfers: dict[str, Path] | None = None,
        on_start: Callable[[DownloadTask], None] | None = None,
        on_success: Callable[[DownloadTask], None] | None = None,
        on_failure: Callable[[DownloadTask, TaskResult], None] | None = None,
    ) -> list[TaskResult]:
        """
        Run every task and return their results in submission order

        Callbacks run on the worker thread of the task they describe.

        Raises:
            ConfigurationError when the cache rejects the credentials; the
            tasks not yet started are cancelled
        """
        if not tasks:
            return []
        transfers = active_transfers if active_transfers is not None else {}

        def worker(task: DownloadTask) -> TaskResult:
            with self._transfers_lock:
                transfers[task.key] = task.dest
            try:
                if on_start:
                    on_start(task)
                self.transfer(task.link, task.dest)
                if on_success:
                    on_success(task)
                return TaskResult(task, True)
            except ConfigurationError as e:
                logger.error(f"Download aborted for {task.key}: {e}")
                if on_failure:
                    on_failure(task, TaskResult(task, False, str(e), e.kind))
                raise
            except (TvloopError, requests.RequestException, OSError) as e:
                logger.error(f"Download failed for {task.key}: {e}")
                result = TaskResult(task, False, str(e), failure_kind(e))
                if on_failure:
                    on_failure(task, result)
                return result
            finally:
                with self._transfers_lock:
                    transfers.pop(task.key, None)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            try:
                results = list(pool.map(worker, tasks))
            except ConfigurationError:
                pool.shutdown(cancel_futures=True)
                raise

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Transfers: {succeeded} downloaded, {len(results) - succeeded} failed")
        return results

    def transfer(self, link: str, dest: Path):
        """
        Unrestrict a cache link and stream it to dest

        The body goes to "<dest>.downloading" first and is renamed into
        place once complete, so a crash never leaves a truncated file
        under the final name.
        """
        url = self.cache.unrestrict(link)
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        partial = dest.with_name(dest.name + PARTIAL_SUFFIX)

        logger.info(f"Downloading: {dest.name}")
        try:
            with requests.get(url, stream=True, timeout=(30, self.timeout)) as response:
                if response.status_code == 429 or response.status_code >= 500:
                    raise TransientProviderError(
                        f"Download answered HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                response.raise_for_status()
                with open(partial, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
            partial.replace(dest)
        except Exception:
            partial.unlink(missing_ok=True)
            raise

        logger.info(f"Downloaded: {dest.name}")
