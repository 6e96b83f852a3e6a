"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from doclink.api.container import Container


def get_container(request: Request) -> Container:
    """Return the application container stored on ``app.state``."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        msg = "application container is not initialised"
        raise RuntimeError(msg)
    return container


AppContainer = Annotated[Container, Depends(get_container)]
