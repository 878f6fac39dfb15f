# uploads_api/access.py
"""
Requester identity and privilege checks.

Every admin/avatar/visibility decision in the pipeline goes through the
functions here so the policy lives in one place. Post visibility itself is
owned by the forum; this module only defines the seam (PostVisibility).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from uploads_api.config import Settings


@dataclass(frozen=True)
class Actor:
    """The requester as seen by the upload pipeline."""

    id: int
    username: str | None = None
    admin: bool = False
    moderator: bool = False
    trust_level: int = 0
    is_api: bool = False

    @property
    def staff(self) -> bool:
        return self.admin or self.moderator


def is_admin(actor: Actor | None) -> bool:
    return actor is not None and actor.admin


def matches_trust_level_setting(setting: str, actor: Actor | None) -> bool:
    """
    Evaluate a 'disabled | staff | admin | <trust level>' site setting.

    Staff always satisfy a trust-level value; 'disabled' matches nobody.
    """
    if actor is None or setting == "disabled":
        return False
    if setting == "admin":
        return actor.admin
    if setting == "staff":
        return actor.staff
    return actor.staff or actor.trust_level >= int(setting)


def can_upload_avatar(actor: Actor | None, settings: Settings) -> bool:
    if is_admin(actor):
        return True
    if settings.DISCOURSE_CONNECT_OVERRIDES_AVATAR:
        return False
    return matches_trust_level_setting(settings.ALLOW_UPLOADED_AVATARS, actor)


def can_set_retain_hours(actor: Actor | None) -> bool:
    return is_admin(actor)


class PostVisibility(ABC):
    """Answers whether an actor may see the post an upload is attached to."""

    @abstractmethod
    def can_see_post(self, actor: Actor | None, post_id: int) -> bool:
        pass


class AuthenticatedPostVisibility(PostVisibility):
    """
    Default visibility: staff see everything, members see posts,
    anonymous requesters see none.

    Deployments replace this with a forum-backed implementation through the
    get_post_visibility dependency.
    """

    def can_see_post(self, actor: Actor | None, post_id: int) -> bool:
        return actor is not None
