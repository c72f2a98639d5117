"""JSON file storage with Result-based error handling.

Reads and writes whole JSON documents. Writes go to a temporary file in
the same directory that is then renamed over the target, so a reader
never sees a half-written document and a failed write leaves the old
one intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from canopy.domain.shared.result import Err, Ok, Result


class JsonStorage:
    """Low-level JSON file I/O with Result-based error handling.

    Example:
        storage = JsonStorage()
        result = storage.load_json(Path("tasks.json"))
        if isinstance(result, Ok):
            data = result.value
        else:
            print(f"Error: {result.error}")
    """

    def load_json(self, path: Path) -> Result[dict[str, Any], str]:
        """Load a JSON document.

        Args:
            path: File to read

        Returns:
            Ok(dict) or Err(str) describing what went wrong
        """
        try:
            if not path.exists():
                return Err(f"File not found: {path}")

            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                return Err(f"Expected a JSON object in {path}")
            return Ok(data)

        except json.JSONDecodeError as e:
            return Err(f"Invalid JSON in {path}: {e}")
        except PermissionError:
            return Err(f"Permission denied reading {path}")
        except OSError as e:
            return Err(f"Error reading {path}: {e}")

    def save_json(
        self,
        path: Path,
        data: dict[str, Any],
        indent: int = 2,
    ) -> Result[None, str]:
        """Atomically replace a JSON document.

        Args:
            path: File to write
            data: Object to serialize
            indent: JSON indentation level

        Returns:
            Ok(None) or Err(str); on error the previous file is untouched
        """
        try:
            content = json.dumps(data, indent=indent)
        except (TypeError, ValueError) as e:
            return Err(f"Data not JSON serializable: {e}")

        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, path)
            tmp_name = None
            return Ok(None)

        except PermissionError:
            return Err(f"Permission denied writing {path}")
        except OSError as e:
            return Err(f"Error writing {path}: {e}")
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
