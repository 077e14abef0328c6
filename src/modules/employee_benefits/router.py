"""API endpoints for Employee benefits module."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.employee_benefits.schemas import BenefitVerifyRequest, BenefitVerifyResponse
from src.modules.employee_benefits.service import BenefitLedgerService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/employee-benefits", tags=["Employee benefits"])


@router.post("/verify", response_model=ApiResponse[BenefitVerifyResponse])
async def verify_benefit_code(
    data: BenefitVerifyRequest,
    db: AsyncSession = Depends(get_db),
):
    """Check a benefit code before offering EMPLOYEE_BENEFIT at the cash desk."""
    service = BenefitLedgerService(db)
    benefit = await service.verify_code(data.code)
    return ApiResponse(
        data=BenefitVerifyResponse.model_validate(benefit),
        message="Employee benefit code is valid",
    )
