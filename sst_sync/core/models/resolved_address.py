"""
ResolvedAddress model: the identifier chain that addresses the adherence table.
"""

from urllib.parse import quote

from pydantic import BaseModel, Field


class ResolvedAddress(BaseModel):
    """
    Ordered chain site -> drive -> file -> worksheet -> table.

    Derived on demand and never persisted.
    """

    site_id: str = Field(..., min_length=1)
    drive_id: str = Field(..., min_length=1)
    file_id: str = Field(..., min_length=1)
    worksheet_id: str = Field(..., min_length=1)
    table_name: str = Field(..., min_length=1)

    @property
    def workbook_path(self) -> str:
        return f"/drives/{quote(self.drive_id, safe='')}/items/{quote(self.file_id, safe='')}/workbook"

    @property
    def table_path(self) -> str:
        return f"{self.workbook_path}/tables/{quote(self.table_name, safe='')}"

    @property
    def rows_path(self) -> str:
        return f"{self.table_path}/rows"

    @property
    def add_rows_path(self) -> str:
        return f"{self.table_path}/rows/add"
