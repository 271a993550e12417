"""
Existence probes for numbered image slots.

Slot N maps to an image named by the `image_name_template` setting with
`number = N + 1`, so slot 0 is `1.png` by default. A probe only answers
whether the slot exists; loading the bytes is the renderer's job.
"""

from pathlib import Path
from urllib.parse import urljoin

import requests

from tilegrid.utils.settings import DEFAULT_SETTINGS


class ProbeError(Exception):
    """The existence check itself failed (transport error, bad path, ...)."""


def image_name(index: int, name_template: str = DEFAULT_SETTINGS['image_name_template']) -> str:
    return name_template.format(number=index + 1, index=index)


class DirectoryImageProbe:
    """Probe slots against files in a local directory."""

    def __init__(self, directory: Path,
                 name_template: str = DEFAULT_SETTINGS['image_name_template']):
        self.directory = Path(directory)
        self.name_template = name_template

    def source_for(self, index: int) -> str:
        return str(self.directory / image_name(index, self.name_template))

    def exists(self, index: int) -> bool:
        try:
            return Path(self.source_for(index)).is_file()
        except OSError as e:
            raise ProbeError(f"Cannot stat {self.source_for(index)}: {e}") from e


class HttpImageProbe:
    """Probe slots with HEAD requests against `<base_url>/images/<name>`."""

    def __init__(self, base_url: str,
                 name_template: str = DEFAULT_SETTINGS['image_name_template'],
                 timeout: float = DEFAULT_SETTINGS['probe_timeout_s'],
                 session: requests.Session | None = None):
        self.base_url = base_url.rstrip('/') + '/'
        self.name_template = name_template
        self.timeout = timeout
        # Defaults to the requests module: one connection per call, nothing shared across threads.
        self.session = session or requests

    def source_for(self, index: int) -> str:
        return urljoin(self.base_url, f"images/{image_name(index, self.name_template)}")

    def exists(self, index: int) -> bool:
        url = self.source_for(index)
        try:
            response = self.session.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            raise ProbeError(f"HEAD {url} failed: {e}") from e
        return response.ok


def create_probe(source: str, name_template: str = DEFAULT_SETTINGS['image_name_template'],
                 timeout: float = DEFAULT_SETTINGS['probe_timeout_s']):
    """Pick a probe by source kind: http(s) URL or local directory."""
    if source.startswith(('http://', 'https://')):
        return HttpImageProbe(source, name_template=name_template, timeout=timeout)
    return DirectoryImageProbe(Path(source), name_template=name_template)
