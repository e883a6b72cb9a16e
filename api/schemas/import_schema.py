"""
Import/export Pydantic schemas.

This module contains schemas for spreadsheet import results and export
requests.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from backend.models.sample import Sample


class ImportWarningItem(BaseModel):
    """One substituted or dropped cell value."""
    
    row: int = Field(..., description="1-based worksheet row")
    field: str = Field(..., description="Canonical field key")
    message: str = Field(..., description="What was substituted")


class ImportResultResponse(BaseModel):
    """Detailed import results."""
    
    status: str = Field(..., description="success, no_valid_data or read_failed")
    message: str = Field(..., description="User-facing summary")
    imported: int = Field(0, description="Number of samples added to the store")
    total_rows: int = Field(0, description="Non-blank data rows in the sheet")
    rejected_rows: int = Field(0, description="Rows missing a name or shelf location")
    columns: Dict[str, str] = Field(default_factory=dict, description="Column letter -> field key")
    warnings: List[ImportWarningItem] = Field(default_factory=list)
    samples: List[Sample] = Field(default_factory=list)
    
    class Config:
        json_schema_extra = {
            "example": {
                "status": "success",
                "message": "成功解析 1 条样品数据",
                "imported": 1,
                "total_rows": 2,
                "rejected_rows": 1,
                "columns": {"A": "name", "B": "location_code"},
                "warnings": [{"row": 2, "field": "stock_quantity", "message": "'abc' is not a number, using 0"}],
                "samples": []
            }
        }


class ExportRequest(BaseModel):
    """Export a caller-supplied (typically filtered) sample list."""
    
    samples: List[Sample] = Field(..., description="Records in display order")
    basename: Optional[str] = Field(
        None, min_length=1, max_length=100,
        description="File name prefix; the ISO date is appended"
    )
