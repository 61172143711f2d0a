"""Request-scoped access to the objects built by create_app()."""

from fastapi import Request

from pageserver.storage import PageConfigRepository


def get_repository(request: Request) -> PageConfigRepository:
    return request.app.state.repository
