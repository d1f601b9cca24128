"""Upload endpoints."""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mediahub.api.v1.dependencies import (
    get_current_user_id,
    get_upload_service,
    require_account_tier,
)
from mediahub.config import Settings, get_settings
from mediahub.models.upload import FileUpload, UploadStatus
from mediahub.models.user import AccountTier
from mediahub.schemas.upload import UploadRequest, UploadResponse, UploadTicketResponse
from mediahub.services.exceptions import (
    AuthorizationError,
    FileTooLargeError,
    InvalidStatusTransitionError,
    UploadNotFoundError,
    ValidationError,
)
from mediahub.services.upload_service import UploadService

router = APIRouter()


@router.post(
    "",
    response_model=UploadTicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request an upload URL",
    description="""
    Record an upload intent and return a presigned PUT URL for it.

    The URL accepts exactly one upload with the declared `content_type` and
    `size`, and expires after a few minutes. Call the confirm endpoint once
    the PUT succeeds.
    """,
)
def request_upload(
    data: UploadRequest,
    user_id: str = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> UploadTicketResponse:
    """Request a presigned upload URL."""
    try:
        ticket = upload_service.request_upload(user_id, data.file_name, data.content_type, data.size)
    except FileTooLargeError as e:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=e.message,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return UploadTicketResponse(
        upload_url=ticket.upload_url,
        intent_id=ticket.intent_id,
        key=ticket.key,
        expires_in=ticket.expires_in,
    )


@router.post(
    "/{upload_id}/confirm",
    response_model=UploadResponse,
    summary="Confirm an upload",
    description="Mark an upload intent as uploaded after the client's PUT succeeded.",
)
def confirm_upload(
    upload_id: int,
    user_id: str = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> FileUpload:
    """Confirm a completed upload."""
    try:
        return upload_service.confirm_upload(user_id, upload_id)

    except UploadNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload {upload_id} not found",
        )
    except AuthorizationError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=e.message,
        )
    except InvalidStatusTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )


@router.get(
    "",
    response_model=list[UploadResponse],
    summary="List uploads",
    description="List the current user's upload intents, newest first.",
)
def list_uploads(
    status: Optional[UploadStatus] = Query(
        default=None,
        description="Filter by upload status"
    ),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    user_id: str = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> list[FileUpload]:
    """List upload intents."""
    return upload_service.list_uploads(user_id=user_id, status=status, limit=limit, offset=offset)


@router.get(
    "/stale",
    response_model=list[UploadResponse],
    summary="List stale pending uploads",
    description="Admin view of PENDING intents older than the staleness threshold, across all users.",
    dependencies=[Depends(require_account_tier(AccountTier.ADMIN))],
)
def list_stale_uploads(
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum results"),
    upload_service: UploadService = Depends(get_upload_service),
    settings: Settings = Depends(get_settings),
) -> list[FileUpload]:
    """List stale pending uploads."""
    cutoff = upload_service.clock() - timedelta(minutes=settings.UPLOAD_STALE_AFTER_MINUTES)
    return upload_service.list_stale_pending(older_than=cutoff, limit=limit)


@router.get(
    "/{upload_id}",
    response_model=UploadResponse,
    summary="Get an upload",
    description="Get one of the current user's upload intents.",
)
def get_upload(
    upload_id: int,
    user_id: str = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> FileUpload:
    """Get an upload intent."""
    try:
        return upload_service.get_upload(user_id, upload_id)

    except UploadNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Upload {upload_id} not found",
        )
