"""In-room chat: roster of display identities plus a bounded message log."""

from typing import Optional
from uuid import uuid4

from chessroom.core.exceptions import InvalidRequestError
from chessroom.services.room import ChatMember, ChatMessage, ChatState

MAX_CHAT_MESSAGES = 100
MAX_MESSAGE_LENGTH = 280
USERNAME_MIN_LENGTH = 2
USERNAME_MAX_LENGTH = 24
AVATAR_MAX_LENGTH = 512

IDENTICON_URL = "https://api.dicebear.com/9.x/identicon/svg?seed={seed}"


def default_avatar(seed: str) -> str:
    return IDENTICON_URL.format(seed=seed)


def default_username(address: str) -> str:
    """ex) 0xab12cd... -> Player-ab12"""
    return f"Player-{address[2:6]}"


def normalize_member(username: str, avatar: str, address: str) -> Optional[ChatMember]:
    """Trim to the allowed lengths. Returns None if nothing of the username is left."""
    username = username.strip()[:USERNAME_MAX_LENGTH]
    if not username:
        return None
    avatar = avatar.strip()[:AVATAR_MAX_LENGTH]
    return ChatMember(username=username, avatar=avatar or default_avatar(address or username))


def enter(chat: ChatState, address: str, username: str, avatar: str = "") -> ChatMember:
    """Explicit onboarding: the username must be 2-24 characters after trimming."""
    username = username.strip()
    if not (USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH):
        raise InvalidRequestError(
            f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} chars"
        )
    member = normalize_member(username, avatar, address)
    # for the type checker: a 2+ character username survives normalization
    assert member is not None
    chat.members[address] = member
    return member


def member_for(
    chat: ChatState, address: str, username: str = "", avatar: str = ""
) -> ChatMember:
    """Roster entry for the sender, created on the fly (with a generated identity if needed) on first use."""
    member = chat.members.get(address)
    if member is not None:
        return member

    member = normalize_member(username or default_username(address), avatar, address)
    if member is None:
        member = ChatMember(username=default_username(address), avatar=default_avatar(address))
    chat.members[address] = member
    return member


def validate_text(text: str) -> str:
    text = text.strip()
    if not text or len(text) > MAX_MESSAGE_LENGTH:
        raise InvalidRequestError(f"Chat message must be 1-{MAX_MESSAGE_LENGTH} chars")
    return text


def post(chat: ChatState, member: ChatMember, address: str, text: str, now: int) -> ChatMessage:
    """Append to the log. Once over the cap, the oldest messages are dropped from the front."""
    message = ChatMessage(
        id=uuid4().hex[:8],
        at=now,
        address=address,
        username=member.username,
        avatar=member.avatar,
        text=text,
    )
    chat.messages.append(message)
    overflow = len(chat.messages) - MAX_CHAT_MESSAGES
    if overflow > 0:
        del chat.messages[:overflow]
    return message
