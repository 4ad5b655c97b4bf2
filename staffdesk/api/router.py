from fastapi import APIRouter

from staffdesk.api.balances import balances_router, dashboard_router
from staffdesk.api.leave_requests import leave_requests_router
from staffdesk.api.payslips import payslips_router
from staffdesk.api.purchase_requests import purchase_requests_router
from staffdesk.api.users import users_router

api_router = APIRouter()
api_router.include_router(users_router)
api_router.include_router(leave_requests_router)
api_router.include_router(purchase_requests_router)
api_router.include_router(balances_router)
api_router.include_router(dashboard_router)
api_router.include_router(payslips_router)
