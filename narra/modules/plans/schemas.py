from pydantic import BaseModel
from typing import Optional, Dict, List, Any
from datetime import datetime


class PlanResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price_monthly: float
    price_yearly: float
    limits: Optional[Dict[str, int]] = None
    features: Optional[List[Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
