from fastapi import APIRouter
from app.api.v1 import appointments, doctors, penalties, schedules, working_hours

api_router = APIRouter()

api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])
api_router.include_router(working_hours.router, prefix="/working-hours", tags=["working-hours"])
api_router.include_router(doctors.router, prefix="/doctors", tags=["doctors"])
api_router.include_router(penalties.router, prefix="/penalties", tags=["penalties"])
