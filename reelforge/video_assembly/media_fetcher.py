"""
Media Fetcher

Downloads finished clips from the video generator to local storage.
A failed download never leaves a truncated file behind.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence, Union

import aiohttp

from ..media_generation.media_models import VideoSegmentRef
from ..utils.async_tasks import gather_or_cancel
from ..utils.errors import NetworkError
from ..utils.logger import LoggerMixin
from ..utils.workspace import RunWorkspace

DEFAULT_DOWNLOAD_TIMEOUT = 60.0


class MediaFetcher(LoggerMixin):
    """HTTP(S) downloader with a bounded timeout and partial-file cleanup"""

    def __init__(self, timeout: float = DEFAULT_DOWNLOAD_TIMEOUT, chunk_size: int = 64 * 1024,
                 max_parallel: int = 4, session: Optional[aiohttp.ClientSession] = None):
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.max_parallel = max_parallel
        self._session = session

    async def fetch(self, url: str, destination: Union[str, Path]) -> None:
        """
        Download ``url`` into ``destination``.

        Raises:
            NetworkError: on connection failure, timeout, truncated body or a
                          non-2xx status. The destination file is removed first.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        try:
            if self._session is not None:
                await self._download(self._session, url, destination)
            else:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    await self._download(session, url, destination)
        except NetworkError:
            destination.unlink(missing_ok=True)
            raise
        except asyncio.TimeoutError as e:
            destination.unlink(missing_ok=True)
            raise NetworkError(f"Download timed out after {self.timeout:g}s: {url}") from e
        except aiohttp.ClientError as e:
            destination.unlink(missing_ok=True)
            raise NetworkError(f"Download failed for {url}: {e}") from e
        except BaseException:
            # Cancellation by a failed sibling, disk errors
            destination.unlink(missing_ok=True)
            raise

        self.logger.debug(f"Downloaded {url} -> {destination}")

    async def _download(self, session: aiohttp.ClientSession, url: str, destination: Path) -> None:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
            if not 200 <= response.status < 300:
                raise NetworkError(f"Download of {url} returned HTTP {response.status}",
                                   status_code=response.status)
            with open(destination, 'wb') as f:
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    f.write(chunk)

    async def fetch_all(self, refs: Sequence[VideoSegmentRef], directory: Union[str, Path, RunWorkspace],
                        suffix: str = '.mp4') -> List[Path]:
        """
        Download every ref concurrently.

        Returns:
            Local paths ordered by segment index, whatever the completion order.
            The first failure cancels the remaining downloads (their partial
            files are removed) and is re-raised.
        """
        semaphore = asyncio.Semaphore(self.max_parallel)
        ordered = sorted(refs, key=lambda ref: ref.index)
        names = [f"video_segment_{ref.index}{suffix}" for ref in ordered]
        if isinstance(directory, RunWorkspace):
            paths = [directory.path(name) for name in names]
        else:
            paths = [Path(directory) / name for name in names]

        async def bounded(ref: VideoSegmentRef, path: Path) -> Path:
            async with semaphore:
                await self.fetch(ref.remote_url, path)
                return path

        self.logger.info(f"Downloading {len(ordered)} video segments")
        try:
            await gather_or_cancel([bounded(ref, path) for ref, path in zip(ordered, paths)])
        except BaseException:
            # Completed siblings are discarded along with the failure
            for path in paths:
                path.unlink(missing_ok=True)
            raise
        return paths

