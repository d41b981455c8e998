# tarotapp/api/routes/root_routes.py
from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    return {"message": "Tarot API is running"}
