"""Server listing and moderation endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from opslink.core.dependencies import (
    get_current_user,
    get_db,
    get_dispatcher,
    get_verified_user,
    require_bot,
    require_capability,
)
from opslink.core.policy import Capability
from opslink.models.user import User
from opslink.schemas.auth import MessageResponse
from opslink.schemas.listing import (
    CommentCreate,
    CommentRead,
    EditRequestCreate,
    EditRequestRead,
    EditResolution,
    ListingCreate,
    ListingDetail,
    ListingModeration,
    ListingRead,
    MemberCountUpdate,
    ReportCreate,
    ReviewCreate,
    ReviewList,
    ReviewRead,
    StatusUpdate,
    SubmissionResponse,
)
from opslink.services import listings as listing_service
from opslink.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/servers", tags=["servers"])


def _describe_changes(changes: dict) -> str:
    return "\n".join(f"- {field}: {value}" for field, value in changes.items()) or "(no changes)"


@router.get("", response_model=list[ListingRead])
async def list_approved(session: AsyncSession = Depends(get_db)) -> list[ListingRead]:
    listings = await listing_service.list_listings(session, status="approved")
    return [ListingRead.model_validate(item) for item in listings]


@router.get("/all", response_model=list[ListingModeration])
async def list_all(
    session: AsyncSession = Depends(get_db),
    _: User = Depends(require_capability(Capability.MODERATE)),
) -> list[ListingModeration]:
    listings = await listing_service.list_listings(session, status=None)
    return [ListingModeration.model_validate(item) for item in listings]


@router.get("/{listing_id}", response_model=ListingDetail)
async def get_listing(listing_id: int, session: AsyncSession = Depends(get_db)) -> ListingDetail:
    listing = await listing_service.require_listing(session, listing_id)
    comments = await listing_service.list_comments(session, listing.id)
    detail = ListingDetail.model_validate(listing)
    detail.comments = [
        CommentRead(id=item.id, user=item.discord_username, text=item.text, created_at=item.created_at)
        for item in comments
    ]
    return detail


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_listing(
    payload: ListingCreate,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_verified_user),
) -> SubmissionResponse:
    listing = await listing_service.submit_listing(session, payload, current_user)
    await session.commit()
    await dispatcher.dispatch(
        "New server submission",
        f"**{listing.name}** by {listing.submitter_username}\nInvite: {listing.invite}",
    )
    return SubmissionResponse(message="Server submitted! Awaiting approval.", id=listing.id)


@router.post("/{listing_id}/request-edit", response_model=EditRequestRead, status_code=status.HTTP_201_CREATED)
async def request_edit(
    listing_id: int,
    payload: EditRequestCreate,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_user),
) -> EditRequestRead:
    edit = await listing_service.request_edit(session, listing_id, payload, current_user)
    await session.commit()
    await dispatcher.dispatch(
        "Edit request submitted",
        f"Server #{listing_id} by {current_user.discord_username}\n{_describe_changes(edit.changes)}",
    )
    return EditRequestRead.model_validate(edit)


@router.patch("/{listing_id}/status", response_model=ListingRead)
async def set_status(
    listing_id: int,
    payload: StatusUpdate,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    _: User = Depends(require_capability(Capability.MODERATE)),
) -> ListingRead:
    listing = await listing_service.set_status(session, listing_id, payload.status, payload.reason)
    await session.commit()
    body = f"**{listing.name}** is now {listing.status}"
    if listing.rejection_reason:
        body += f"\nReason: {listing.rejection_reason}"
    await dispatcher.dispatch("Server status updated", body)
    return ListingRead.model_validate(listing)


@router.post("/{listing_id}/edit-approve", response_model=ListingRead)
async def approve_edit(
    listing_id: int,
    payload: EditResolution,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    _: User = Depends(require_capability(Capability.MODERATE)),
) -> ListingRead:
    listing, edit = await listing_service.approve_edit(
        session, listing_id, payload.edit_id, expected_revision=payload.expected_revision
    )
    await session.commit()
    await dispatcher.dispatch(
        "Edit request approved",
        f"**{listing.name}**\n{_describe_changes(edit.changes)}",
    )
    return ListingRead.model_validate(listing)


@router.post("/{listing_id}/edit-deny", response_model=ListingRead)
async def deny_edit(
    listing_id: int,
    payload: EditResolution,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    _: User = Depends(require_capability(Capability.MODERATE)),
) -> ListingRead:
    listing, _edit = await listing_service.deny_edit(
        session, listing_id, payload.edit_id, reason=payload.reason, expected_revision=payload.expected_revision
    )
    await session.commit()
    body = f"**{listing.name}**"
    if payload.reason:
        body += f"\nReason: {payload.reason}"
    await dispatcher.dispatch("Edit request denied", body)
    return ListingRead.model_validate(listing)


@router.post("/{listing_id}/report", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def report_listing(
    listing_id: int,
    payload: ReportCreate,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    report = await listing_service.report_listing(session, listing_id, current_user, payload.reason)
    await session.commit()
    await dispatcher.dispatch(
        "Server reported",
        f"Server #{listing_id} reported by {current_user.discord_username}\nReason: {report.reason}",
    )
    return MessageResponse(message="Report submitted")


@router.delete("/{listing_id}", response_model=MessageResponse)
async def delete_listing(
    listing_id: int,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    _: User = Depends(require_capability(Capability.DELETE_LISTING)),
) -> MessageResponse:
    listing, removed = await listing_service.delete_listing(session, listing_id)
    await session.commit()
    await dispatcher.dispatch("Server deleted", f"**{listing.name}** and {removed} comment(s) removed")
    return MessageResponse(message="Server deleted")


@router.patch("/{discord_server_id}/updateMembers", response_model=MessageResponse)
async def update_members(
    discord_server_id: str,
    payload: MemberCountUpdate,
    session: AsyncSession = Depends(get_db),
    _: None = Depends(require_bot),
) -> MessageResponse:
    await listing_service.update_member_count(session, discord_server_id, payload.members)
    await session.commit()
    return MessageResponse(message="Member count updated")


@router.post("/{listing_id}/comments", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def post_comment(
    listing_id: int,
    payload: CommentCreate,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    await listing_service.add_comment(session, listing_id, current_user, payload.text)
    await session.commit()
    return MessageResponse(message="Comment posted")


@router.post("/{listing_id}/reviews", response_model=ReviewRead)
async def submit_review(
    listing_id: int,
    payload: ReviewCreate,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReviewRead:
    review = await listing_service.upsert_review(session, listing_id, current_user, payload.rating, payload.comment)
    await session.commit()
    return ReviewRead.model_validate(review)


@router.get("/{listing_id}/reviews", response_model=ReviewList)
async def list_reviews(listing_id: int, session: AsyncSession = Depends(get_db)) -> ReviewList:
    reviews, average = await listing_service.list_reviews(session, listing_id)
    return ReviewList(reviews=[ReviewRead.model_validate(item) for item in reviews], average_rating=average)
