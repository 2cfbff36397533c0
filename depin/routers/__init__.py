"""Router package: collects all API routers and registers them on the FastAPI app."""

from fastapi import FastAPI

from depin.routers import (
    admin,
    auth,
    index,
    nodes,
    relay,
    rights,
    token,
)


def register_all_routers(app: FastAPI):
    app.include_router(admin.router)
    app.include_router(auth.router)
    app.include_router(nodes.router)
    app.include_router(rights.router)
    app.include_router(token.router)
    app.include_router(index.router)
    app.include_router(relay.router)
