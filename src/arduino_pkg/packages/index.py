"""Package index refresh.

Downloads the platform package index into
``<dataDir>/cache/package_index.json``. The download streams into a
``.download`` temp file which is validated as JSON and then renamed over
the previous copy, so a failed refresh leaves the old index in place.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import requests

from arduino_pkg.config import DataLayout

from .package import NetworkError, ParseError

logger = logging.getLogger(__name__)

INDEX_FILENAME = "package_index.json"


class IndexUpdater:
    """Fetches the package index into the cache directory."""

    def __init__(self, layout: DataLayout, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.layout = layout
        self.url = url
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    @property
    def index_path(self) -> Path:
        return self.layout.cache / INDEX_FILENAME

    def update(self) -> Path:
        """Download and install a fresh index.

        Returns:
            Path to the updated index file

        Raises:
            NetworkError: On transport or HTTP status failure
            ParseError: If the downloaded body is not JSON
        """
        self.layout.cache.mkdir(parents=True, exist_ok=True)
        temp_file = self.index_path.with_name(INDEX_FILENAME + ".download")

        try:
            response = self.session.get(self.url, stream=True, timeout=self.timeout)
            response.raise_for_status()
            downloaded = 0
            with open(temp_file, "wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
                        downloaded += len(chunk)
        except requests.RequestException as e:
            _cleanup_temp_file(temp_file)
            raise NetworkError(f"Failed to download package index from {self.url}: {e}")
        except OSError as e:
            _cleanup_temp_file(temp_file)
            raise NetworkError(f"Failed to write package index: {e}")

        try:
            with open(temp_file, "r", encoding="utf-8") as f:
                json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            _cleanup_temp_file(temp_file)
            raise ParseError(f"Package index from {self.url} is not valid JSON: {e}")

        temp_file.replace(self.index_path)
        logger.info(f"Updated package index ({downloaded} bytes) at {self.index_path}")
        return self.index_path


def _cleanup_temp_file(temp_file: Path) -> None:
    try:
        temp_file.unlink(missing_ok=True)
    except OSError as e:
        logger.debug(f"Could not remove {temp_file}: {e}")
