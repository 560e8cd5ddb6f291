"""Abstract interface for tabular task sources."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from tasksheet.core.models import ConnectionProbe, RawTablePayload


class TabularTaskSource(ABC):
    """Abstract base class for a remote table holding one task per row."""

    spreadsheet_id: str
    sheet_name: str

    @abstractmethod
    async def fetch_all(self, range: Optional[str] = None) -> RawTablePayload:
        """Read a values range from the source."""
        pass

    @abstractmethod
    async def append(self, row: Sequence[Any]) -> dict[str, Any]:
        """Append one row after the last non-empty row."""
        pass

    @abstractmethod
    async def update_range(self, row_index: int, values: Sequence[Any]) -> dict[str, Any]:
        """Overwrite the supplied columns of one row, starting at column A."""
        pass

    @abstractmethod
    async def delete_row(self, row_index: int) -> dict[str, Any]:
        """Remove one row; every row below it shifts up."""
        pass

    @abstractmethod
    async def test_connection(self) -> ConnectionProbe:
        """Validate reachability and credentials without mutating anything."""
        pass
