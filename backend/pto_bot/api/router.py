from fastapi import APIRouter

from pto_bot.api.slack import slack_router

api_router = APIRouter()
api_router.include_router(slack_router)
