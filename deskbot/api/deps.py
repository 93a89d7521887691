"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from deskbot.bootstrap import Container


def get_container(request: Request) -> Container:
    """Application components built during startup."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is starting",
        )
    return container
