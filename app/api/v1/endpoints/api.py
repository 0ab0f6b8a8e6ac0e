from fastapi import APIRouter
from app.api.v1.endpoints import document_links, master_documents

api_router = APIRouter()

# Documents and their links are always scoped to one project
api_router.include_router(
    master_documents.router,
    prefix="/projects/{project_id}/documents",
    tags=["Document Register"],
)
api_router.include_router(
    document_links.router,
    prefix="/projects/{project_id}/documents/{document_id}/links",
    tags=["Document Register - Links"],
)
