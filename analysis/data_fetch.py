#!/usr/bin/env python3
"""
Data Fetch Module

Retrieves the raw input tables. The pipeline only depends on the `Fetcher`
interface (`fetch(key) -> DataFrame`), so the HTTP source can be swapped for
local files or in-memory frames.
"""

import logging
import time
from io import StringIO
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

import pandas as pd
import requests

from core.config import DataSources, FetchParameters
from models.errors import DataFetchError

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Anything that can return a raw source table by key"""

    def fetch(self, key: str) -> pd.DataFrame:
        ...


class HttpCsvFetcher:
    """Downloads source CSVs with retry and exponential backoff"""

    def __init__(self, sources: Optional[DataSources] = None,
                 params: Optional[FetchParameters] = None,
                 cache_dir: Optional[Union[str, Path]] = None,
                 session: Optional[requests.Session] = None):
        """
        Args:
            sources: Source locations
            params: Timeout and retry settings
            cache_dir: If given, every downloaded CSV is also written here
            session: Pre-configured session (a new one is created otherwise)
        """
        self.sources = sources or DataSources()
        self.params = params or FetchParameters()
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': self.params.user_agent,
            'Accept': 'text/csv',
        })

    def fetch(self, key: str) -> pd.DataFrame:
        """Download one source. Raises DataFetchError after the last failed attempt."""
        url = self.sources.url_for(key)
        logger.info(f"Downloading {key} from {url}")

        last_error = None
        for attempt in range(self.params.max_retries):
            try:
                response = self.session.get(url, timeout=self.params.timeout)
                response.raise_for_status()
                text = response.text
                df = pd.read_csv(StringIO(text))
                logger.info(f"Downloaded {len(df)} rows for {key}")
                if self.cache_dir is not None:
                    self._cache(key, text)
                return df
            except (requests.RequestException, pd.errors.ParserError) as e:
                last_error = e
                logger.warning(f"Download attempt {attempt + 1} failed for {key}: {e}")
                if attempt < self.params.max_retries - 1:
                    time.sleep(self.params.backoff_base ** attempt)

        raise DataFetchError(key, f"{self.params.max_retries} attempts failed, last error: {last_error}")

    def _cache(self, key: str, text: str) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.cache_dir / self.sources.files[key]
        path.write_text(text)
        logger.debug(f"Cached {key} to {path}")


class LocalCsvFetcher:
    """Reads source CSVs from a directory (offline runs or cached downloads)"""

    def __init__(self, data_dir: Union[str, Path], sources: Optional[DataSources] = None):
        self.data_dir = Path(data_dir)
        self.sources = sources or DataSources()

    def fetch(self, key: str) -> pd.DataFrame:
        if key not in self.sources.files:
            raise DataFetchError(key, "unknown source")
        path = self.data_dir / self.sources.files[key]
        if not path.exists():
            raise DataFetchError(key, f"file {path} not found")
        logger.info(f"Reading {key} from {path}")
        return pd.read_csv(path)


class FrameFetcher:
    """Serves frames already in memory"""

    def __init__(self, frames: Dict[str, pd.DataFrame]):
        self.frames = dict(frames)

    def fetch(self, key: str) -> pd.DataFrame:
        if key not in self.frames:
            raise DataFetchError(key, "no frame registered")
        return self.frames[key].copy()
