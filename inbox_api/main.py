import logging
from contextlib import asynccontextmanager
from typing import Annotated, List, Optional

from fastapi import FastAPI, Response, Request, Depends, Header, HTTPException, status, Query
from sqlalchemy.orm import Session

from inbox_api.config import settings
from inbox_api.storage import init_db, check_db_health, get_db, get_user_by_id
from inbox_api.logging_utils import setup_logging, RequestLoggingMiddleware, log_inbox_data
from inbox_api.metrics import get_metrics, get_metrics_content_type
from inbox_api.i18n import translate
from inbox_api import inbox
from inbox_api.schemas import (
    HealthResponse,
    ErrorResponse,
    SendMessageRequest,
    SendMessageResponse,
    MessageRecord,
    ConversationRecord,
    SuccessResponse,
)


setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the schema on startup."""
    init_db()
    yield


app = FastAPI(
    title="Inbox API",
    description="Private messaging inbox: send, read, list conversations, delete, clear",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


def get_current_user(
    request: Request,
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
    db: Session = Depends(get_db),
):
    """
    Resolve the acting user from the X-User-Id header.
    Authentication happens upstream; an unknown id is treated as unauthenticated.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing user")

    user = get_user_by_id(db, x_user_id)
    if user is None:
        logger.warning(f"Unknown user id in X-User-Id: {x_user_id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown user")

    log_inbox_data(request, user_id=user.id)
    return user


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """Readiness probe - returns 503 until the database is reachable and migrated."""
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Send Route
# =============================================================================

@app.post(
    "/members/send-private-message",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Missing or unknown user"},
        404: {"model": ErrorResponse, "description": "Receiver not found"},
        422: {"description": "Validation error"},
    }
)
async def send_private_message(
    request: Request,
    body: SendMessageRequest,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Send a private message to another user.

    The message is stored in both inboxes, then the receiver is notified
    by email and push according to their preferences.
    """
    receiver = get_user_by_id(db, body.to_user_id)
    if receiver is None:
        log_inbox_data(request, user_id=user.id, result="receiver_not_found")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="receiver not found")

    message = inbox.sent_message(db, user, receiver, body.message, translate)

    log_inbox_data(request, user_id=user.id, result="sent", message_id=message.id)
    return {"message": message.to_json()}


# =============================================================================
# Inbox Routes
# =============================================================================

@app.get("/inbox/messages", response_model=List[MessageRecord])
async def inbox_messages(
    page: Annotated[Optional[int], Query(ge=0, description="Page of 10 messages; omit for all")] = None,
    conversation: Annotated[Optional[str], Query(description="Restrict to one conversation uuid")] = None,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the user's messages, newest first, as seen from the user's side."""
    options = {"conversation": conversation, "mapProps": True}
    if page is not None:
        options["page"] = page

    return inbox.get_user_inbox(db, user, options)


@app.get("/inbox/conversations", response_model=List[ConversationRecord])
async def inbox_conversations(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """One entry per conversation partner, most recent activity first."""
    return inbox.list_conversations(db, user)


@app.get(
    "/inbox/messages/{message_id}",
    response_model=MessageRecord,
    responses={404: {"model": ErrorResponse, "description": "Message not found"}},
)
async def inbox_message(
    message_id: str,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Fetch one message from the user's inbox."""
    message = inbox.get_user_inbox_message(db, user, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="message not found")
    return message.to_json()


@app.delete(
    "/inbox/messages/{message_id}",
    response_model=SuccessResponse,
    responses={404: {"model": ErrorResponse, "description": "Message not found"}},
)
async def delete_inbox_message(
    request: Request,
    message_id: str,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete one message from the user's inbox. The peer's copy is untouched."""
    deleted = inbox.delete_message(db, user, message_id)
    log_inbox_data(
        request,
        user_id=user.id,
        result="deleted" if deleted else "not_found",
        message_id=message_id,
    )
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="message not found")
    return SuccessResponse(success=True)


@app.delete("/inbox/clear", response_model=SuccessResponse)
async def clear_inbox(
    request: Request,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete every message in the user's inbox and reset the unread counter."""
    inbox.clear_pms(db, user)
    log_inbox_data(request, user_id=user.id, result="cleared")
    return SuccessResponse(success=True)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
