from pydantic import BaseModel
from typing import Optional, List, Literal


class TableStatus(BaseModel):
    name: str
    exists: bool
    has_data: Optional[bool] = None
    error: Optional[str] = None


class SetupStatusResponse(BaseModel):
    status: Literal["good", "issues", "error"]
    tables: List[TableStatus]
    message: str
