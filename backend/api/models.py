"""
Pydantic request/response models for the API.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


# ============== Inventory ==============

class InventoryRecordResponse(BaseModel):
    """A normalized inventory record as sent to dashboards."""
    id: str
    name: str
    category: str
    quantity: int
    price: float
    supplier: str
    status: str
    dateAdded: str


class InventoryRecordsResponse(BaseModel):
    version: Optional[int] = None
    count: int = 0
    records: List[InventoryRecordResponse] = Field(default_factory=list)


# ============== Sync ==============

class MessageResponse(BaseModel):
    message: str


class SimulatedSyncResponse(BaseModel):
    message: str
    newItem: Dict[str, Any]
