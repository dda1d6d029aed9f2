from flask_jwt_extended import get_jwt_identity

from skinportal.errors import NotFound
from skinportal.extensions import db
from skinportal.models.profile import Profile


def current_profile() -> Profile:
    """Resolve the caller from the JWT identity (set as str(profile.id) at sign-in)."""
    try:
        profile_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        profile_id = None

    profile = db.session.get(Profile, profile_id) if profile_id else None
    if profile is None:
        raise NotFound("User not found")
    return profile
