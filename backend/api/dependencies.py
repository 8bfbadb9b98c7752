"""
api/dependencies.py
───────────────────
FastAPI dependencies shared by the v1 routers.
"""

from fastapi import Request

from services.retrieval import RetrievalService


def get_retrieval_service(request: Request) -> RetrievalService:
    """The ``RetrievalService`` built in the application lifespan."""
    return request.app.state.retrieval
