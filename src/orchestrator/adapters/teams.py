"""Microsoft Teams approval channel via the Graph API.

Each candidate task becomes one channel message. Approval is read back from
the reactions on that message; reaction types are returned exactly as Graph
reports them (legacy names such as "like", or the unicode emoji itself).
"""

from __future__ import annotations

import html

import structlog

from src.orchestrator.adapters.base import MessagingAdapter
from src.orchestrator.adapters.http import HttpAdapter
from src.orchestrator.state.schemas import CandidateTask, ChannelRef

logger = structlog.get_logger(__name__)


class TeamsMessagingAdapter(HttpAdapter, MessagingAdapter):
    """Posts approval requests to a Teams channel and reads reactions.

    Args:
        client: httpx client with base_url set to the Graph API root.
        max_attempts: Attempts per call, including the first.
        approval_hint: Reaction symbol shown in the message as the way to approve.
    """

    service_name = "teams"

    def __init__(self, client, max_attempts: int = 3, approval_hint: str = "👍") -> None:
        super().__init__(client, max_attempts=max_attempts)
        self._approval_hint = approval_hint

    async def post_message(
        self,
        channel_ref: ChannelRef,
        task: CandidateTask,
        board_draft_id: str,
        meeting_title: str = "",
    ) -> str:
        content = _build_approval_message(task, board_draft_id, meeting_title, self._approval_hint)
        response = await self._request(
            "post_message",
            "POST",
            _messages_path(channel_ref),
            json={"body": {"contentType": "html", "content": content}},
        )
        data = self._json("post_message", response)
        message_id = data.get("id")
        if not message_id:
            raise self._fail("post_message", "response has no message id", retryable=False)

        logger.info(
            "teams.approval_posted",
            message_ref=message_id,
            board_draft_id=board_draft_id,
            channel_id=channel_ref.channel_id,
        )
        return str(message_id)

    async def get_reactions(self, channel_ref: ChannelRef, message_ref: str) -> list[str]:
        response = await self._request(
            "get_reactions",
            "GET",
            f"{_messages_path(channel_ref)}/{message_ref}",
        )
        data = self._json("get_reactions", response)
        reactions = [
            str(reaction["reactionType"])
            for reaction in data.get("reactions") or []
            if isinstance(reaction, dict) and reaction.get("reactionType")
        ]
        logger.debug("teams.reactions_read", message_ref=message_ref, count=len(reactions))
        return reactions


def _messages_path(channel_ref: ChannelRef) -> str:
    return f"/teams/{channel_ref.team_id}/channels/{channel_ref.channel_id}/messages"


def _build_approval_message(
    task: CandidateTask,
    board_draft_id: str,
    meeting_title: str,
    approval_hint: str,
) -> str:
    """Build the HTML body of an approval request.

    Args:
        task: Candidate task being proposed.
        board_draft_id: Planner draft id, shown for traceability.
        meeting_title: Title of the source meeting (may be empty).
        approval_hint: Reaction symbol that approves the task.

    Returns:
        HTML string for the Teams message body.
    """
    meeting_html = ""
    if meeting_title:
        meeting_html = f"<p><em>From meeting: {html.escape(meeting_title)}</em></p>"

    description_html = ""
    if task.description:
        description_html = f"<p>{html.escape(task.description)}</p>"

    due_html = ""
    if task.due_at:
        due_html = f"<li><strong>Due:</strong> {task.due_at.strftime('%B %d, %Y')}</li>"

    return (
        f"<h3>{html.escape(task.title)}</h3>"
        f"{meeting_html}"
        f"{description_html}"
        "<ul>"
        f"<li><strong>Priority:</strong> {task.priority.value}</li>"
        f"{due_html}"
        f"<li><strong>Draft:</strong> {html.escape(board_draft_id)}</li>"
        "</ul>"
        f"<p>React with {approval_hint} to approve this task.</p>"
    )
