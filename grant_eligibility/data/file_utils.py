import os
import uuid
import logging
from dataclasses import dataclass
from urllib.parse import urlparse, unquote

import requests

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "grant.pdf"
CHUNK_SIZE = 64 * 1024


class FetchError(Exception):
    pass


class InvalidURLError(FetchError):
    pass


class DownloadError(FetchError):
    pass


class FileWriteError(FetchError):
    pass


@dataclass
class DownloadedFile:
    local_path: str
    filename: str


def validate_url(url: str) -> str:
    """Reject anything that is not an absolute http(s) URL with a host."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("Invalid URL")
    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidURLError(f"Invalid URL: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidURLError(f"Invalid URL: {url}")
    return url


def filename_from_url(url: str, default: str = DEFAULT_FILENAME) -> str:
    name = os.path.basename(unquote(urlparse(url).path))
    return name or default


def download_file(url: str, scratch_dir: str, filename: str = None, timeout: float = 30.0) -> DownloadedFile:
    """
    Downloads the file at `url` into `scratch_dir`.

    The local name is prefixed with a random id so concurrent requests never
    share a file; `filename` is what gets reported upstream.
    """
    url = validate_url(url)
    filename = filename or filename_from_url(url)
    local_path = os.path.join(scratch_dir, f"{uuid.uuid4().hex}_{filename}")

    try:
        response = requests.get(url, stream=True, timeout=timeout)
    except (requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.InvalidURL) as e:
        raise InvalidURLError(str(e)) from e
    except requests.exceptions.RequestException as e:
        raise DownloadError(f"Download of {url} failed: {e}") from e

    with response:
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise DownloadError(f"Download of {url} failed: {e}") from e

        try:
            os.makedirs(scratch_dir, exist_ok=True)
            with open(local_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
        except OSError as e:
            delete_file(local_path)
            raise FileWriteError(f"Could not write {local_path}: {e}") from e
        except requests.exceptions.RequestException as e:
            delete_file(local_path)
            raise DownloadError(f"Download of {url} interrupted: {e}") from e

    logger.info(f"Downloaded {url} to {local_path}")
    return DownloadedFile(local_path=local_path, filename=filename)


def delete_file(path: str) -> bool:
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not delete local file {path}: {e}")
        return False
