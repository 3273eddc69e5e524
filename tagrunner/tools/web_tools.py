"""URL fetching for fetch_url actions.

Content is truncated to FETCH_MAX_BYTES to avoid flooding the context. HTML
pages are reduced to their visible text.
"""

import re
from typing import Optional

import requests
from bs4 import BeautifulSoup

from tagrunner import config
from tagrunner.tools.base import OperationResult


_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def html_to_text(html: str) -> str:
    """Visible text of an HTML page, without scripts or styles."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    return _BLANK_LINES_RE.sub("\n\n", soup.get_text()).strip()


def fetch_url(url: str, timeout: Optional[int] = None, max_bytes: Optional[int] = None) -> OperationResult:
    """Fetch the contents of a URL.

    Network failures are returned as a failed OperationResult, never raised.
    """
    timeout = timeout or config.FETCH_TIMEOUT_SECONDS
    max_bytes = max_bytes or config.FETCH_MAX_BYTES

    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        return OperationResult.fail(f"Failed to fetch {url}: {type(e).__name__}: {e}")

    content = response.text
    if "html" in response.headers.get("Content-Type", ""):
        content = html_to_text(content)

    truncated = len(content) > max_bytes
    if truncated:
        content = content[:max_bytes] + "\n...[truncated]..."

    return OperationResult.ok({
        "url": url,
        "status_code": response.status_code,
        "content": content,
        "truncated": truncated,
    })
