"""FastAPI application exposing the sync orchestrator."""

import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, Field

from chatsync.attachments import HttpAttachmentUploader
from chatsync.config import settings
from chatsync.errors import SyncErrorCode, SyncResult
from chatsync.identity import StaticIdentityProvider, UserContext, resolve_user
from chatsync.models import ChatUser, Conversation, DirectoryEntry, MessageFeed, MessageKind
from chatsync.sse import create_sse_response, message_stream
from chatsync.store import create_store
from chatsync.sync import SyncOrchestrator
from chatsync.user_directory import UserDirectory

logger = logging.getLogger(__name__)

store = create_store()
orchestrator = SyncOrchestrator(store, uploader=HttpAttachmentUploader())
directory = UserDirectory(store)

app = FastAPI(
    title="chatsync API",
    description="Direct-messaging conversation sync",
    version="0.1.0",
)


@app.on_event("startup")
async def startup_event():
    """Configure logging and connect the key-path store."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await store.connect()


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up on shutdown."""
    await store.disconnect()


def get_orchestrator() -> SyncOrchestrator:
    return orchestrator


def get_directory() -> UserDirectory:
    return directory


def get_current_user(
    user_email: str | None = Header(alias="X-User-Email", default=None),
    user_name: str | None = Header(alias="X-User-Name", default=None),
) -> UserContext | None:
    """Identity from request headers, or None if either header is missing."""
    return resolve_user(StaticIdentityProvider(user_email, user_name))


def require_user(user: UserContext | None = Depends(get_current_user)) -> UserContext:
    if user is None:
        raise HTTPException(status_code=401, detail=SyncErrorCode.MISSING_IDENTITY.value)
    return user


_STATUS_BY_ERROR = {
    SyncErrorCode.NOT_FOUND: 404,
    SyncErrorCode.MISSING_IDENTITY: 401,
    SyncErrorCode.INVALID_MESSAGE: 422,
    SyncErrorCode.INVALID_KEY: 422,
}


def _check(result: SyncResult) -> SyncResult:
    """Turn a failed result into an HTTP error carrying its code."""
    if not result:
        status = _STATUS_BY_ERROR.get(result.error, 502)
        raise HTTPException(
            status_code=status,
            detail={"error": result.error.value if result.error else None, "detail": result.detail},
        )
    return result


# ============= Request/Response Models =============


class ConversationListResponse(BaseModel):
    """Response model for list of conversations."""

    conversations: list[Conversation]
    total: int


class StartConversationRequest(BaseModel):
    """Request model for the first message to a user."""

    recipient_email: str = Field(..., description="Recipient identity (raw or canonical)")
    recipient_name: str = Field(..., description="Recipient display name")
    kind: MessageKind


class SendMessageRequest(BaseModel):
    """Request model for a message in an existing conversation."""

    recipient_email: str
    recipient_name: str
    kind: MessageKind


# ============= Health =============


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "store": settings.store_backend}


# ============= Users =============


@app.post("/users", response_model=SyncResult)
async def register_user(user: ChatUser, users: UserDirectory = Depends(get_directory)):
    """Register a user profile and add them to the directory."""
    return _check(await users.insert_user(user))


@app.get("/users", response_model=list[DirectoryEntry])
async def search_users(
    q: str = "",
    user: UserContext | None = Depends(get_current_user),
    users: UserDirectory = Depends(get_directory),
):
    """Search the directory, or list it when no query is given."""
    if not q:
        return await users.get_all_users()
    return await users.search_users(q, exclude_key=user.user_key if user else None)


# ============= Conversations =============


@app.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    user: UserContext = Depends(require_user),
    sync: SyncOrchestrator = Depends(get_orchestrator),
):
    """List the caller's conversations."""
    conversations = await sync.list_conversations(user.user_key)
    return ConversationListResponse(conversations=conversations, total=len(conversations))


@app.post("/conversations", response_model=SyncResult)
async def start_conversation(
    request: StartConversationRequest,
    user: UserContext | None = Depends(get_current_user),
    sync: SyncOrchestrator = Depends(get_orchestrator),
):
    """Send a first message; reuses an existing conversation with the recipient."""
    return _check(
        await sync.send_first_message(user, request.recipient_email, request.recipient_name, request.kind)
    )


@app.get("/conversations/{conversation_id}/messages", response_model=MessageFeed)
async def list_messages(conversation_id: str, sync: SyncOrchestrator = Depends(get_orchestrator)):
    """Get the message history of a conversation."""
    return await sync.list_messages(conversation_id)


@app.get("/conversations/{conversation_id}/messages/stream")
async def stream_messages(
    conversation_id: str,
    request: Request,
    sync: SyncOrchestrator = Depends(get_orchestrator),
):
    """Stream the message history of a conversation as it changes."""
    return create_sse_response(
        message_stream(
            conversation_id,
            sync.watch_messages(conversation_id),
            request,
            heartbeat_interval=settings.sse_heartbeat_interval,
        )
    )


@app.post("/conversations/{conversation_id}/messages", response_model=SyncResult)
async def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    user: UserContext | None = Depends(get_current_user),
    sync: SyncOrchestrator = Depends(get_orchestrator),
):
    """Send a message to an existing conversation."""
    return _check(
        await sync.send_message(
            user, conversation_id, request.recipient_email, request.recipient_name, request.kind
        )
    )


@app.post("/conversations/{conversation_id}/read", response_model=SyncResult)
async def mark_read(
    conversation_id: str,
    user: UserContext | None = Depends(get_current_user),
    sync: SyncOrchestrator = Depends(get_orchestrator),
):
    """Mark the caller's latest message of a conversation as read."""
    return _check(await sync.mark_conversation_read(user, conversation_id))


@app.delete("/conversations/{conversation_id}", response_model=SyncResult)
async def delete_conversation(
    conversation_id: str,
    user: UserContext | None = Depends(get_current_user),
    sync: SyncOrchestrator = Depends(get_orchestrator),
):
    """Hide a conversation for the caller; the other participant keeps it."""
    return _check(await sync.delete_conversation(user, conversation_id))


# ============= Run =============


def run():
    """Run the application."""
    import uvicorn

    uvicorn.run(
        "chatsync.api:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )


if __name__ == "__main__":
    run()
