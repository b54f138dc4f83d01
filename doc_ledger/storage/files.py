"""
File access helpers.

Provides scoped JSON reads and atomic JSON writes for the stores.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Union

PathLike = Union[str, Path]


def read_json(path: PathLike) -> Any:
    """Read and parse a JSON document.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the content is not valid JSON
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: PathLike, data: Any) -> Path:
    """Write a JSON document so readers never observe a partial file.

    The document is written to a temporary file in the target directory
    and moved over the final name with os.replace. On failure the
    temporary file is removed and the error propagates.

    Args:
        path: Destination file path
        data: JSON-serializable document

    Returns:
        Path of the written file
    """
    target = Path(path)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return target
