from fastapi import APIRouter

from hr_ledger.api.balances import accounts_router, employee_accounts_router
from hr_ledger.api.holidays import holidays_router
from hr_ledger.api.overtime import overtime_router
from hr_ledger.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(employee_accounts_router)
api_router.include_router(accounts_router)
api_router.include_router(overtime_router)
api_router.include_router(holidays_router)
