from supabase import Client
from narra.modules.plans.schemas import PlanResponse
from typing import List
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class PlanService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_plans(self) -> List[PlanResponse]:
        """All plans, cheapest first"""
        try:
            result = self.supabase.table("plans")\
                .select("*")\
                .order("price_monthly")\
                .execute()
            return [PlanResponse(**row) for row in (result.data or [])]
        except Exception as e:
            logger.error(f"Plans query failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch plans")

    def get_plan(self, plan_id: str) -> PlanResponse:
        try:
            result = self.supabase.table("plans")\
                .select("*")\
                .eq("id", plan_id)\
                .maybe_single()\
                .execute()
            if not result or not result.data:
                raise HTTPException(status_code=404, detail="Plan not found")
            return PlanResponse(**result.data)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Plan query failed for {plan_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch plan")
