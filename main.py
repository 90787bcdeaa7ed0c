"""
main.py
-------
Entry point for the message board API.

Responsibilities:
    - Build the configured database connection policy.
    - Expose /api/messages through FastAPI and delegate to the dispatcher.
    - Optionally dispose of the connection pool on shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from config import API_HOST, API_PORT, DB_DISPOSE_ON_SHUTDOWN
from db.connection import build_policy
from handlers.message_handler import RequestDispatcher
from utils.logger import get_logger

logger = get_logger(__name__)

MESSAGES_PATH = "/api/messages"


class MessagesEndpoint:
    """
    ASGI endpoint for /api/messages.

    Registered as a plain ASGI callable so the route matches every HTTP
    method; the dispatcher, not the framework, answers unsupported ones.
    """

    def __init__(self, dispatcher: RequestDispatcher):
        self.dispatcher = dispatcher

    async def __call__(self, scope, receive, send) -> None:
        request = Request(scope, receive)
        body = await request.body()
        result = await run_in_threadpool(self.dispatcher.handle, request.method, body)
        response = Response(
            content=result.body,
            status_code=result.status,
            media_type=result.content_type,
            headers=result.headers,
        )
        await response(scope, receive, send)


def create_app(
    dispatcher: Optional[RequestDispatcher] = None,
    dispose_on_shutdown: bool = DB_DISPOSE_ON_SHUTDOWN,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        dispatcher: Pre-built dispatcher (tests inject one backed by a fake
            database); defaults to one using the configured policy.
        dispose_on_shutdown: Close the connection policy when the app stops.
    """
    if dispatcher is None:
        dispatcher = RequestDispatcher(build_policy())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if dispose_on_shutdown:
            dispatcher.policy.close()
        else:
            logger.info("Leaving database connections to process teardown.")

    app = FastAPI(title="Message Board API", lifespan=lifespan)
    app.state.dispatcher = dispatcher
    # No method filter: Starlette leaves methods unrestricted for ASGI endpoints.
    app.add_route(MESSAGES_PATH, MessagesEndpoint(dispatcher), include_in_schema=False)

    return app


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    logger.info(f"🚀 Message board API listening on {API_HOST}:{API_PORT}")
    uvicorn.run(create_app(), host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
