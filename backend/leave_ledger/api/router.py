from fastapi import APIRouter

from leave_ledger.api.balances import allocation_router, company_balance_router, employee_balance_router
from leave_ledger.api.leave_types import router as leave_types_router
from leave_ledger.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(leave_types_router)
api_router.include_router(employee_balance_router)
api_router.include_router(company_balance_router)
api_router.include_router(allocation_router)
api_router.include_router(requests_router)
