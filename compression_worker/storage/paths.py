import re
import secrets
import string
import time

_ALPHABET = string.digits + string.ascii_lowercase
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_name(file_name: str) -> str:
    """Strip the extension and replace characters unsafe in object keys."""
    base = file_name.rsplit("/", 1)[-1]
    stem, dot, _ = base.rpartition(".")
    stem = stem if dot and stem else base
    cleaned = _UNSAFE.sub("_", stem).strip("._")
    return cleaned or "file"


def random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def build_object_path(
    parent_id: str,
    file_name: str,
    extension: str,
    *,
    timestamp_ms: int | None = None,
    suffix: str | None = None,
) -> str:
    """Project-scoped key: {parent_id}/{timestamp}-{suffix}-{name}.{ext}"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    if suffix is None:
        suffix = random_suffix()
    return f"{parent_id}/{timestamp_ms}-{suffix}-{sanitize_name(file_name)}.{extension.lstrip('.')}"
