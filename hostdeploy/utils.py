"""
hostdeploy Utilities

Credential redaction and repository URL helpers shared by the pipeline.
"""

from pathlib import PurePosixPath
from typing import Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from hostdeploy.constants import REDACTED


def redact(text: Optional[str], secrets: Iterable[str]) -> str:
    """
    Mask every secret value that appears in text.

    Args:
        text: Text that may contain credentials
        secrets: Secret values to mask

    Returns:
        Text with each secret replaced by a fixed mask
    """
    if not text:
        return ""

    # Longest first so a secret that contains another is masked whole
    for secret in sorted((s for s in secrets if s), key=len, reverse=True):
        text = text.replace(secret, REDACTED)
    return text


def repo_name_from_url(repo_url: str) -> str:
    """
    Derive the working copy directory name from a repository URL.

    Mirrors `basename URL .git`: the last path segment without a trailing
    ".git".

    Args:
        repo_url: Repository URL (https or scp-like)

    Returns:
        Repository name (e.g. "app" for https://example.com/org/app.git)
    """
    path = urlsplit(repo_url).path or repo_url
    name = PurePosixPath(path.rstrip("/")).name
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


def authenticated_url(repo_url: str, token: str) -> str:
    """
    Embed an access token into an https repository URL.

    The result is for one git invocation only and must never be stored
    or logged.

    Args:
        repo_url: Repository URL without credentials
        token: Personal access token

    Returns:
        URL of the form https://TOKEN@host/path
    """
    parts = urlsplit(repo_url)
    if parts.scheme not in ("http", "https"):
        return repo_url

    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit(
        (parts.scheme, f"{token}@{host}", parts.path, parts.query, parts.fragment)
    )
