from fastapi import APIRouter, Depends
from narra.database.supabase_client import get_supabase
from narra.modules.plans.schemas import PlanResponse
from narra.modules.plans.service import PlanService
from supabase import Client
from typing import List

router = APIRouter(prefix="/plans", tags=["plans"])


def get_plan_service(supabase: Client = Depends(get_supabase)) -> PlanService:
    return PlanService(supabase)


@router.get("", response_model=List[PlanResponse])
async def list_plans(service: PlanService = Depends(get_plan_service)):
    """Public plan listing for the pricing page"""
    return service.list_plans()


@router.get("/{plan_id}", response_model=PlanResponse)
async def get_plan(plan_id: str, service: PlanService = Depends(get_plan_service)):
    return service.get_plan(plan_id)
