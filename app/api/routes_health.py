from __future__ import annotations

from fastapi import APIRouter

from app.services import runtime

router = APIRouter()


@router.get("/healthz")
def healthz():
    return {"status": "ok", "sessions": len(runtime.get_registry().identities())}


@router.get("/")
def root():
    return {"status": "ok"}
