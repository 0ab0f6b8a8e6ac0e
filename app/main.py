from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routers.document_numbering import router as document_numbering_router
from app.api.v1.endpoints.api import api_router
from app.core.config import settings

app = FastAPI(title="Document Register API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS.split(",") if settings.CORS_ALLOW_ORIGINS else ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(document_numbering_router)
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "up"}
