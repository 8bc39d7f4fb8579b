"""Comment service for project comments, replies and mentions.

Provides business logic for:
- Posting comments and replies with resolved @mentions
- Generating mention and reply notifications
- Deleting a comment together with its replies
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..config import settings
from ..schemas.comment import Comment, CommentAuthor, CommentPostResponse, Reply
from ..schemas.member import RosterMember
from .archive_service import ProjectNotFoundError
from .batch_writer import ChunkedBatchWriter, CommitOutcome
from .document_store import DocumentSnapshot, DocumentStore, join_path
from .graph_paths import REPLIES, Namespace, active_graph, generate_id
from .member_service import RosterLookup, project_members
from .mention_service import build_preview, resolve_mentions
from .notification_service import FanoutResult, NotificationService

logger = logging.getLogger(__name__)


class CommentNotFoundError(Exception):
    """The comment does not exist in the project."""


class CommentPermissionError(Exception):
    """The caller is not allowed to change the comment."""


class CommentDeleteError(Exception):
    """Deleting a comment stopped part way through its replies."""

    def __init__(self, comment_id: str, outcome: CommitOutcome) -> None:
        self.comment_id = comment_id
        self.outcome = outcome
        super().__init__(
            f"Deleting comment {comment_id} stopped after "
            f"{outcome.chunks_committed}/{outcome.total_chunks} chunks"
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Lookups
# ============================================================================


async def _get_project(store: DocumentStore, project_id: str) -> DocumentSnapshot:
    project = await store.get(active_graph(project_id).root)
    if project is None:
        raise ProjectNotFoundError(project_id, Namespace.ACTIVE)
    return project


async def _get_comment(store: DocumentStore, project_id: str, comment_id: str) -> DocumentSnapshot:
    comment = await store.get(active_graph(project_id).comment(comment_id))
    if comment is None:
        raise CommentNotFoundError(f"Comment {comment_id} not found in project {project_id}")
    return comment


async def _project_roster(
    store: DocumentStore, roster_lookup: RosterLookup, project_id: str
) -> List[RosterMember]:
    project = await _get_project(store, project_id)
    return await roster_lookup.get_roster(project_members(project.data))


# ============================================================================
# Comments and replies
# ============================================================================


async def post_comment(
    store: DocumentStore,
    roster_lookup: RosterLookup,
    notifier: NotificationService,
    project_id: str,
    author: CommentAuthor,
    content: str,
) -> CommentPostResponse:
    """
    Post a comment and notify the members it mentions.

    Args:
        store: Document store client
        roster_lookup: Resolves the project's members to display names
        notifier: Notification emitter
        project_id: Active project to comment on
        author: Posting member
        content: Plain text body

    Returns:
        CommentPostResponse with the comment and the notified ids

    Raises:
        ProjectNotFoundError: If the project is not active
    """
    roster = await _project_roster(store, roster_lookup, project_id)
    mentioned = resolve_mentions(content, roster, author.id)
    mentioned.discard(author.id)

    comment = Comment(
        id=generate_id(),
        author=author,
        content=content,
        created_at=notifier.now(),
        mentions=sorted(mentioned),
        likes=[],
    )
    await store.set(active_graph(project_id).comment(comment.id), comment.to_document())
    logger.info(f"Comment posted: project={project_id}, comment={comment.id}, mentions={len(mentioned)}")

    result = await notifier.notify_mentioned(
        comment.mentions,
        author,
        project_id,
        build_preview(content, settings.notification_preview_length),
    )

    return CommentPostResponse(
        project_id=project_id,
        comment=comment,
        notified=result.notified,
        notification_failures=len(result.failures),
    )


async def post_reply(
    store: DocumentStore,
    roster_lookup: RosterLookup,
    notifier: NotificationService,
    project_id: str,
    comment_id: str,
    author: CommentAuthor,
    content: str,
) -> CommentPostResponse:
    """
    Post a reply to a comment.

    The comment's author gets a reply notification; other mentioned members
    get a mention notification. The replier is never notified.

    Raises:
        ProjectNotFoundError: If the project is not active
        CommentNotFoundError: If the comment does not exist
    """
    roster = await _project_roster(store, roster_lookup, project_id)
    parent = await _get_comment(store, project_id, comment_id)
    comment_author_id = (parent.data.get("author") or {}).get("id")

    reply = Reply(
        id=generate_id(),
        author=author,
        content=content,
        created_at=notifier.now(),
    )
    await store.set(active_graph(project_id).reply(comment_id, reply.id), reply.to_document())
    logger.info(f"Reply posted: project={project_id}, comment={comment_id}, reply={reply.id}")

    preview = build_preview(content, settings.notification_preview_length)
    result = FanoutResult()

    if comment_author_id:
        result.merge(await notifier.notify_reply(comment_author_id, author, project_id, preview))

    mentioned = resolve_mentions(content, roster, author.id)
    mentioned.discard(author.id)
    mentioned.discard(comment_author_id)
    if mentioned:
        result.merge(
            await notifier.notify_mentioned(sorted(mentioned), author, project_id, preview)
        )

    return CommentPostResponse(
        project_id=project_id,
        reply=reply,
        notified=result.notified,
        notification_failures=len(result.failures),
    )


async def delete_comment(
    store: DocumentStore,
    project_id: str,
    comment_id: str,
    actor_id: str,
    max_batch_size: Optional[int] = None,
) -> int:
    """
    Delete a comment and all of its replies.

    Only the comment's author may delete it. Replies are deleted before the
    comment, so a failed run leaves the comment in place for a retry.

    Returns:
        int: Number of replies deleted

    Raises:
        CommentNotFoundError: If the comment does not exist
        CommentPermissionError: If the actor is not the author
        CommentDeleteError: If a chunk failed
    """
    comment = await _get_comment(store, project_id, comment_id)
    if (comment.data.get("author") or {}).get("id") != actor_id:
        raise CommentPermissionError("Only the author can delete this comment")

    replies = await store.list_children(join_path(comment.path, REPLIES))

    writer = ChunkedBatchWriter(store, max_batch_size)
    for reply in replies:
        writer.delete(reply.path)
    writer.delete(comment.path)

    outcome = await writer.commit()
    if not outcome.is_done:
        raise CommentDeleteError(comment_id, outcome)

    logger.info(f"Comment deleted: project={project_id}, comment={comment_id}, replies={len(replies)}")
    return len(replies)
