"""Reusable FastAPI dependencies."""

from fastapi import Request

from ..services.file_service import FileService
from ..services.progress_service import ProgressTracker
from .container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_file_service(request: Request) -> FileService:
    """Dependency to get file service."""
    return get_services(request).file_service


def get_progress_tracker(request: Request) -> ProgressTracker:
    """Dependency to get progress tracker."""
    return get_services(request).progress
