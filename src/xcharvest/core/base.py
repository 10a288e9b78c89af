"""Base classes for configuration models.

This module holds the foundation shared by config.py and log.py:
- Closeable Protocol for resource cleanup
- BaseCloseable, which closes its children on exit
- BaseConfig, the marker base for configuration sections

It lives in its own module so config.py and log.py can both import
it without a cycle.
"""

from __future__ import annotations

import sys
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    """Protocol for objects that support close()."""

    def close(self) -> None:
        """Release held resources."""
        ...


class BaseCloseable(BaseModel):
    """Pydantic model that closes its Closeable fields.

    Usable as a context manager. On close() every field that
    implements Closeable is closed in turn; a failure in one child
    is reported on stderr and does not stop the others.

    Settings.close() -> Logger.close() -> FileSink.close()
    """

    def close(self):
        """Close all closeable child objects."""
        for field_name in self.__class__.model_fields:
            child = getattr(self, field_name, None)
            if child is None:
                continue

            if isinstance(child, Closeable):
                try:
                    child.close()
                except Exception as e:
                    print(
                        f"Warning: Error closing {field_name}: {e}",
                        file=sys.stderr,
                    )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Base class for all configuration sections.

    A semantic marker: subclasses are loaded from YAML/env/CLI and
    are not mutated while a harvest runs.
    """
    pass


__all__ = ["Closeable", "BaseCloseable", "BaseConfig"]
