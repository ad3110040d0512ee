import os
from typing import Optional
from vidproxy.core.errors import EmptyOutputFileError, OutputFileMissingError


def locate_output(directory: str, prefix: str) -> str:
    """
    Find the file a download produced.

    yt-dlp picks the final extension itself, so entries are matched by
    prefix and the most recently modified one wins. Returns the file name.
    """
    try:
        entries = os.listdir(directory)
    except FileNotFoundError:
        entries = []

    candidates = []
    for name in entries:
        if not name.startswith(prefix):
            continue
        path = os.path.join(directory, name)
        try:
            st = os.stat(path)
        except OSError:
            continue
        candidates.append((st.st_mtime, name))

    if not candidates:
        raise OutputFileMissingError("Output file was not created", f"prefix={prefix!r}")

    candidates.sort(key=lambda c: c[0], reverse=True)
    name = candidates[0][1]
    verify_output(os.path.join(directory, name))
    return name


def verify_output(path: str) -> int:
    try:
        size = os.path.getsize(path)
    except OSError:
        raise OutputFileMissingError("Output file was not created", path)
    if size == 0:
        raise EmptyOutputFileError("Output file is empty", path)
    return size


def reported_output(directory: str, reported_path: Optional[str]) -> Optional[str]:
    """Name of the tool-reported file when it exists inside directory"""
    if not reported_path:
        return None
    name = os.path.basename(reported_path)
    if not name:
        return None
    candidate = os.path.join(directory, name)
    if os.path.isfile(candidate):
        return name
    return None


def resolve_in_directory(directory: str, name: str) -> Optional[str]:
    """Absolute path of name inside directory, None when it would escape it"""
    if not name or name in ('.', '..') or '/' in name or '\\' in name or '\x00' in name:
        return None
    base = os.path.realpath(directory)
    path = os.path.realpath(os.path.join(base, name))
    if os.path.dirname(path) != base:
        return None
    return path
