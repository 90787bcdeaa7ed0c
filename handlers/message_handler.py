"""
handlers/message_handler.py
---------------------------
Framework-agnostic handler for /api/messages.

Gates every request behind the schema bootstrap, routes by HTTP method,
and maps Results to responses. This is the only place where an error kind
is turned into an HTTP status.
"""

import json
from dataclasses import dataclass, field
from typing import Optional

from config import MESSAGE_LIST_LIMIT
from db.connection import ConnectionPolicy
from db.init_db import SchemaBootstrapper, SchemaState
from repositories.message_repo import INVALID_TEXT, MessageRepository
from utils.errors import MessageBoardError, SchemaError, ValidationError
from utils.logger import get_logger
from utils.result import Result

logger = get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
ALLOWED_METHODS = ("GET", "POST")


@dataclass
class HttpResponse:
    """Transport-neutral response produced once per request."""
    status: int
    body: str = ""
    content_type: str = TEXT_CONTENT_TYPE
    headers: dict = field(default_factory=dict)


class RequestDispatcher:
    """
    Handles one invocation of the messages endpoint.

    Workflow:
        1. If the schema is not ready yet, bootstrap it (500 on failure,
           the next request retries).
        2. GET  -> list the most recent messages (200, JSON array).
           POST -> validate and append a message (201, empty body).
           else -> 405.
    """

    def __init__(
        self,
        policy: ConnectionPolicy,
        state: Optional[SchemaState] = None,
        list_limit: int = MESSAGE_LIST_LIMIT,
    ):
        # A bad configured limit is a deployment fault, not a client error.
        if isinstance(list_limit, bool) or not isinstance(list_limit, int) or list_limit < 1:
            raise ValueError(f"MESSAGE_LIST_LIMIT must be a positive integer, got {list_limit!r}")
        self.policy = policy
        self.state = state if state is not None else SchemaState()
        self.bootstrapper = SchemaBootstrapper(policy, self.state)
        self.repo = MessageRepository(policy)
        self.list_limit = list_limit

    def handle(self, method: str, body: bytes = b"") -> HttpResponse:
        method = (method or "").upper()

        if not self.state.ready:
            result = self.bootstrapper.ensure_schema()
            if not result.ok:
                return self._error_response(result.error)

        if method == "GET":
            return self._handle_get()
        if method == "POST":
            return self._handle_post(body)
        return HttpResponse(
            status=405,
            body="Method Not Allowed",
            headers={"Allow": ", ".join(ALLOWED_METHODS)},
        )

    def _handle_get(self) -> HttpResponse:
        logger.info("handle_get: Received a GET request.")
        result = self.repo.list_recent(self.list_limit)
        if not result.ok:
            return self._error_response(result.error)
        payload = [m.to_dict() for m in result.value]
        return HttpResponse(status=200, body=json.dumps(payload), content_type=JSON_CONTENT_TYPE)

    def _handle_post(self, body: bytes) -> HttpResponse:
        logger.info("handle_post: Received a POST request.")
        result = self._parse_text(body)
        if result.ok:
            result = self.repo.append(result.value)
        if not result.ok:
            return self._error_response(result.error)
        return HttpResponse(status=201)

    @staticmethod
    def _parse_text(body: bytes) -> Result:
        """Decode the JSON request body and pull out its ``text`` field."""
        try:
            payload = json.loads(body or b"")
        except ValueError:
            return Result.failure(ValidationError(INVALID_TEXT))
        if not isinstance(payload, dict):
            return Result.failure(ValidationError(INVALID_TEXT))
        return Result.success(payload.get("text"))

    @staticmethod
    def _error_response(error: MessageBoardError) -> HttpResponse:
        if isinstance(error, ValidationError):
            return HttpResponse(status=400, body=error.message)
        if isinstance(error, SchemaError):
            logger.error(f"Schema bootstrap failed: {error}")
            return HttpResponse(status=500, body="Database initialization failed. Please check logs.")
        logger.error(f"Request failed: {error}")
        return HttpResponse(status=500, body=f"{error.message}. Please check logs.")
