"""HTTP layer: FastAPI app serving the resource handlers."""

from resourceforge.api.app import create_app

app = create_app()

__all__ = ["app", "create_app"]
