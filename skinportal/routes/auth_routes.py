import re

from flask import Blueprint, request
from flask_jwt_extended import create_access_token, get_jwt, jwt_required
from firebase_admin import auth as fb_auth
from sqlalchemy.exc import SQLAlchemyError

from skinportal.errors import StorageError, ValidationError
from skinportal.extensions import db
from skinportal.models.profile import Profile, Role
from skinportal.models.token import TokenBlocklist
from skinportal.services.access_control import Operation, require
from skinportal.utils.identity import current_profile
from skinportal.utils.response import error, isoformat, success


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# =========================
# CONFIG
# =========================
EMAIL_REGEX = r"^[\w\.-]+@[\w\.-]+\.\w+$"
ROLE_VALUES = {r.value for r in Role}
PROFILE_FIELDS = {"name", "avatar_url", "password"}


# =========================
# HELPERS
# =========================
def _validate_register_input(data: dict) -> list[str]:
    errors: list[str] = []

    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()
    role = (data.get("role") or Role.PATIENT.value).strip().lower()

    if not email:
        errors.append("Email is required.")
    elif not re.match(EMAIL_REGEX, email):
        errors.append("Email format is invalid.")

    if not password:
        errors.append("Password is required.")
    elif len(password) < 8:
        errors.append("Password must be at least 8 characters.")

    if not name:
        errors.append("Name is required.")
    elif len(name) > 100:
        errors.append("Name is too long (max 100 characters).")

    if role not in ROLE_VALUES:
        errors.append("Role must be 'patient' or 'doctor'.")

    return errors


def _profile_json(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "email": profile.email,
        "name": profile.name,
        "role": profile.role.value,
        "avatar_url": profile.avatar_url,
        "created_at": isoformat(profile.created_at),
        "updated_at": isoformat(profile.updated_at),
    }


def _issue_token(profile: Profile) -> str:
    return create_access_token(identity=str(profile.id))


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StorageError("Could not save the profile") from e


# =========================
# ROUTES
# =========================

@auth_bp.route("/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or {}
    if not data:
        return error("No data sent", 400)

    validation_errors = _validate_register_input(data)
    if validation_errors:
        raise ValidationError(validation_errors[0], {"errors": validation_errors})

    email = data["email"].strip().lower()
    if Profile.query.filter_by(email=email).first():
        return error("Email is already registered, please sign in.", 400)

    profile = Profile(
        email=email,
        name=data["name"].strip(),
        role=Role((data.get("role") or Role.PATIENT.value).strip().lower()),
        auth_provider="password",
    )
    profile.set_password(data["password"])
    db.session.add(profile)
    _commit()

    return success(_profile_json(profile), "Registration successful", 201)


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}

    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return error("Email and password are required", 400)

    profile = Profile.query.filter_by(email=email).first()
    if not profile or not profile.check_password(password):
        return error("Wrong email or password", 401)

    return success({"token": _issue_token(profile), "user": _profile_json(profile)}, "Signed in")


@auth_bp.route("/firebase", methods=["POST"])
def firebase_login():
    """
    Exchange a Firebase ID token (Authorization: Bearer <id_token>) for a portal JWT.
    Unknown accounts are created as patients.
    """
    h = request.headers.get("Authorization", "")
    id_token = h.split(" ", 1)[1].strip() if h.startswith("Bearer ") else ""
    if not id_token:
        return error("Missing Firebase token", 401)

    try:
        decoded = fb_auth.verify_id_token(id_token, check_revoked=True)
    except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.ExpiredIdTokenError,
            fb_auth.RevokedIdTokenError, fb_auth.CertificateFetchError):
        return error("Firebase token invalid/expired", 401)

    uid = decoded.get("uid")
    email = (decoded.get("email") or "").lower()
    name = decoded.get("name") or ""
    picture = decoded.get("picture")

    if not uid:
        return error("Firebase token invalid", 401)
    if not email:
        return error("The Firebase account has no email address", 400)

    # uid first, then email (links an existing password account)
    profile = Profile.query.filter_by(firebase_uid=uid).first()
    if not profile:
        profile = Profile.query.filter_by(email=email).first()
        if profile and (profile.firebase_uid or decoded.get("email_verified") is not True):
            return error("An account with this email already exists, verify the email in Firebase "
                         "or sign in with your password", 409)

    if not profile:
        profile = Profile(
            email=email,
            name=name.strip() or email.split("@")[0],
            role=Role.PATIENT,
            firebase_uid=uid,
            auth_provider="firebase",
            avatar_url=picture,
        )
        db.session.add(profile)
        _commit()
    else:
        changed = False
        if not profile.firebase_uid:
            profile.firebase_uid = uid
            changed = True
        if picture and not profile.avatar_url:
            profile.avatar_url = picture
            changed = True
        if changed:
            _commit()

    return success({"token": _issue_token(profile), "user": _profile_json(profile)}, "Signed in with Firebase")


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    db.session.add(TokenBlocklist(jti=get_jwt()["jti"]))
    _commit()
    return success(None, "Signed out")


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def get_my_profile():
    return success(_profile_json(current_profile()), "Profile loaded")


@auth_bp.route("/profile", methods=["PUT"])
@jwt_required()
def update_profile():
    profile = current_profile()
    require(profile, Operation.UPDATE_PROFILE, profile)

    data = request.get_json(silent=True) or {}
    if "role" in data:
        raise ValidationError("Role cannot be changed")
    unknown = set(data) - PROFILE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Name is required")
        profile.name = name

    if "avatar_url" in data:
        profile.avatar_url = (data.get("avatar_url") or "").strip() or None

    password = data.get("password")
    if password:
        if len(password) < 8:
            raise ValidationError("New password must be at least 8 characters")
        profile.set_password(password)

    _commit()
    return success(_profile_json(profile), "Profile updated")
