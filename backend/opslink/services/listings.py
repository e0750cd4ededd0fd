"""Service layer for listings and their moderation workflow.

Status lifecycle::

    pending -> approved | denied
    approved -> taken-down

Moderators may also set any status directly, which is how a denied or
taken-down listing gets re-opened. Edit requests live beside the listing
until a moderator approves (fields merged into the listing) or denies
(listing fields left as they were) them; either way the request row is removed.

Every write to a listing, including its reports, edit requests and reviews,
updates the row and so bumps ``Listing.revision``. Edit resolution
can be pinned to the revision the moderator looked at, and a concurrent
write surfaces as :class:`RevisionConflict` rather than a silent stale merge.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from opslink.core.errors import Forbidden, NotFound, RevisionConflict, ValidationError
from opslink.models.comment import Comment
from opslink.models.listing import LISTING_STATUSES, EditRequest, Listing, ListingReport, Review
from opslink.models.user import User, utcnow
from opslink.schemas.listing import EditRequestCreate, ListingCreate

logger = logging.getLogger(__name__)

MAX_TAGS = 5
TAG_MIN_LENGTH = 2
TAG_MAX_LENGTH = 24
LOGO_PATTERN = re.compile(r"^https?://\S+\.(png|jpe?g|gif|webp|svg)(\?\S*)?$", re.IGNORECASE)
EDITABLE_FIELDS = ("description", "logo", "website", "language", "members", "type", "nsfw", "tags")
EDIT_REQUIRED_FIELDS = ("name", "description", "logo")
MAX_MEMBERS = 10_000_000


def normalize_tags(tags: Iterable[Any] | None) -> list[str]:
    """Lowercase, trim and de-duplicate tags, keeping first-seen order.

    Tags outside 2-24 characters are dropped and at most five survive.
    """
    normalized: list[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        value = tag.strip().lower()
        if not TAG_MIN_LENGTH <= len(value) <= TAG_MAX_LENGTH or value in normalized:
            continue
        normalized.append(value)
        if len(normalized) == MAX_TAGS:
            break
    return normalized


def validate_logo(logo: str | None) -> str:
    if not logo or not logo.strip():
        raise ValidationError("A logo image URL is required")
    logo = logo.strip()
    if not LOGO_PATTERN.match(logo):
        raise ValidationError("Logo must be a direct image URL (png, jpg, jpeg, gif, webp, svg)")
    return logo


def filter_changes(changes: dict[str, Any]) -> dict[str, Any]:
    """Keep only editable fields with a non-empty value."""

    return {
        field: changes[field]
        for field in EDITABLE_FIELDS
        if field in changes and changes[field] not in (None, "", [])
    }


def _load_options():
    return (
        selectinload(Listing.reports),
        selectinload(Listing.edit_requests),
        selectinload(Listing.reviews),
    )


async def list_listings(session: AsyncSession, status: str | None = "approved") -> list[Listing]:
    stmt = select(Listing).options(*_load_options()).order_by(Listing.created_at.desc(), Listing.id.desc())
    if status is not None:
        stmt = stmt.where(Listing.status == status)
    result = await session.execute(stmt)
    return list(result.scalars().unique().all())


async def get_listing(session: AsyncSession, listing_id: int) -> Listing | None:
    result = await session.execute(select(Listing).options(*_load_options()).where(Listing.id == listing_id))
    return result.scalar_one_or_none()


async def require_listing(session: AsyncSession, listing_id: int) -> Listing:
    listing = await get_listing(session, listing_id)
    if not listing:
        raise NotFound("Server not found")
    return listing


async def list_comments(session: AsyncSession, listing_id: int) -> list[Comment]:
    result = await session.execute(
        select(Comment).where(Comment.listing_id == listing_id).order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return list(result.scalars().all())


def _touch(listing: Listing) -> None:
    listing.updated_at = utcnow()


async def _flush(session: AsyncSession) -> None:
    try:
        await session.flush()
    except StaleDataError as exc:
        raise RevisionConflict() from exc


async def submit_listing(session: AsyncSession, data: ListingCreate, submitter: User) -> Listing:
    logo = validate_logo(data.logo)
    if not data.discord_server_id or not data.discord_server_id.strip():
        raise ValidationError("Discord server ID is required")

    listing = Listing(
        name=data.name.strip(),
        invite=data.invite.strip(),
        description=data.description.strip(),
        language=data.language,
        members=data.members,
        discord_server_id=data.discord_server_id.strip(),
        type=data.type,
        rules=data.rules,
        website=data.website,
        nsfw=bool(data.nsfw),
        tags=normalize_tags(data.tags),
        logo=logo,
        status="pending",
        submitter_id=submitter.id,
        submitter_username=submitter.discord_username,
        submitter_discord_id=submitter.discord_user_id,
        submitter_tag=submitter.discord_tag,
        reports=[],
        edit_requests=[],
        reviews=[],
    )
    session.add(listing)
    await session.flush()
    logger.info("Listing %s submitted by user %s", listing.id, submitter.id)
    return listing


async def request_edit(session: AsyncSession, listing_id: int, data: EditRequestCreate, requester: User) -> EditRequest:
    listing = await require_listing(session, listing_id)
    if listing.submitter_id != requester.id:
        raise Forbidden("Only the submitter can request edits")

    proposed = data.model_dump(exclude_unset=True)
    missing = [field for field in EDIT_REQUIRED_FIELDS if not proposed.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    proposed["logo"] = validate_logo(proposed.get("logo"))
    if "tags" in proposed and proposed["tags"] is not None:
        proposed["tags"] = normalize_tags(proposed["tags"])

    edit = EditRequest(requested_by_id=requester.id, changes=filter_changes(proposed), status="pending")
    listing.edit_requests.append(edit)
    _touch(listing)
    await _flush(session)
    logger.info("Edit request %s opened on listing %s", edit.id, listing.id)
    return edit


def _pop_edit_request(listing: Listing, edit_id: int, expected_revision: int | None) -> EditRequest:
    if expected_revision is not None and expected_revision != listing.revision:
        raise RevisionConflict()
    for edit in listing.edit_requests:
        if edit.id == edit_id:
            listing.edit_requests.remove(edit)
            return edit
    raise NotFound("Edit request not found")


async def approve_edit(
    session: AsyncSession, listing_id: int, edit_id: int, expected_revision: int | None = None
) -> tuple[Listing, EditRequest]:
    """Merge the edit request's fields into the listing and drop the request.

    Fields replace wholesale; list values such as tags are not merged.
    """
    listing = await require_listing(session, listing_id)
    edit = _pop_edit_request(listing, edit_id, expected_revision)
    edit.status = "approved"
    for field, value in (edit.changes or {}).items():
        if field in EDITABLE_FIELDS:
            setattr(listing, field, list(value) if isinstance(value, list) else value)
    _touch(listing)
    await _flush(session)
    logger.info("Edit request %s approved on listing %s", edit_id, listing.id)
    return listing, edit


async def deny_edit(
    session: AsyncSession,
    listing_id: int,
    edit_id: int,
    reason: str | None = None,
    expected_revision: int | None = None,
) -> tuple[Listing, EditRequest]:
    listing = await require_listing(session, listing_id)
    edit = _pop_edit_request(listing, edit_id, expected_revision)
    edit.status = "denied"
    edit.rejection_reason = reason
    _touch(listing)
    await _flush(session)
    logger.info("Edit request %s denied on listing %s", edit_id, listing.id)
    return listing, edit


async def set_status(session: AsyncSession, listing_id: int, status: str, reason: str | None = None) -> Listing:
    if status not in LISTING_STATUSES:
        raise ValidationError("Invalid status")
    listing = await require_listing(session, listing_id)
    listing.status = status
    listing.rejection_reason = (reason or None) if status == "denied" else None
    await _flush(session)
    logger.info("Listing %s moved to %s", listing.id, status)
    return listing


async def report_listing(session: AsyncSession, listing_id: int, reporter: User, reason: str | None) -> ListingReport:
    if not reason or not reason.strip():
        raise ValidationError("A reason is required")
    listing = await require_listing(session, listing_id)
    report = ListingReport(reporter_id=reporter.id, reason=reason.strip())
    listing.reports.append(report)
    _touch(listing)
    await _flush(session)
    return report


async def delete_listing(session: AsyncSession, listing_id: int) -> tuple[Listing, int]:
    """Delete the listing and every comment on it; returns the comment count removed."""

    listing = await require_listing(session, listing_id)
    result = await session.execute(delete(Comment).where(Comment.listing_id == listing.id))
    await session.delete(listing)
    await _flush(session)
    logger.info("Listing %s deleted with %s comment(s)", listing_id, result.rowcount)
    return listing, result.rowcount or 0


def parse_member_count(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError("Invalid member count")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("Invalid member count")
        value = int(value)
    elif isinstance(value, str):
        if not value.strip().isdigit():
            raise ValidationError("Invalid member count")
        value = int(value.strip())
    elif not isinstance(value, int):
        raise ValidationError("Invalid member count")
    if value < 0 or value > MAX_MEMBERS:
        raise ValidationError("Invalid member count")
    return value


async def update_member_count(session: AsyncSession, discord_server_id: str, members: Any) -> list[Listing]:
    """Overwrite the member count of every listing for the Discord server."""

    count = parse_member_count(members)
    result = await session.execute(select(Listing).where(Listing.discord_server_id == discord_server_id))
    listings = list(result.scalars().all())
    if not listings:
        raise NotFound("Server not found")
    for listing in listings:
        listing.members = count
    await _flush(session)
    return listings


async def add_comment(session: AsyncSession, listing_id: int, author: User, text: str | None) -> Comment:
    listing = await get_listing(session, listing_id)
    if not listing or listing.status != "approved":
        raise NotFound("Server not found")
    if not text or not text.strip():
        raise ValidationError("Comment text is required")
    comment = Comment(
        listing_id=listing.id,
        user_id=author.id,
        discord_username=author.discord_username,
        discord_tag=author.discord_tag,
        text=text.strip(),
    )
    session.add(comment)
    await session.flush()
    return comment


def parse_rating(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")
    return value


async def upsert_review(
    session: AsyncSession, listing_id: int, reviewer: User, rating: Any, comment: str | None
) -> Review:
    """Create the caller's review or overwrite the one they already left."""

    rating = parse_rating(rating)
    listing = await require_listing(session, listing_id)
    review = next((item for item in listing.reviews if item.reviewer_id == reviewer.id), None)
    if review is None:
        review = Review(reviewer_id=reviewer.id, discord_username=reviewer.discord_username)
        listing.reviews.append(review)
    review.discord_username = reviewer.discord_username
    review.rating = rating
    review.comment = comment
    review.created_at = utcnow()
    _touch(listing)
    await _flush(session)
    return review


async def list_reviews(session: AsyncSession, listing_id: int) -> tuple[list[Review], float | None]:
    listing = await require_listing(session, listing_id)
    result = await session.execute(select(func.avg(Review.rating)).where(Review.listing_id == listing.id))
    average = result.scalar_one_or_none()
    return list(listing.reviews), (round(float(average), 2) if average is not None else None)
