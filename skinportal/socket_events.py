import logging

from flask import current_app, request, session
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from flask_socketio import join_room, leave_room
from jwt.exceptions import PyJWTError

from skinportal.extensions import db, socketio
from skinportal.models.profile import Profile
from skinportal.models.token import TokenBlocklist
from skinportal.services.diagnosis_workflow import patient_room

logger = logging.getLogger(__name__)


def _profile_from_token(token):
    """Same checks as a protected route: valid signature, not expired, not signed out."""
    if not token:
        return None
    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        logger.info("Socket token rejected: %s", e)
        return None
    if TokenBlocklist.query.filter_by(jti=claims["jti"]).first():
        return None
    try:
        profile_id = int(claims[current_app.config["JWT_IDENTITY_CLAIM"]])
    except (KeyError, TypeError, ValueError):
        return None
    return db.session.get(Profile, profile_id)


# Clients connect with auth={"token": "<access token>"} (or ?token=...)
@socketio.on('connect')
def handle_connect(auth=None):
    token = (auth or {}).get('token') or request.args.get('token')
    profile = _profile_from_token(token)
    if profile is None:
        logger.debug("Client %s refused: no valid token", request.sid)
        return False

    session['profile_id'] = profile.id
    join_room(patient_room(profile.id))
    logger.debug("Client %s connected as profile %s", request.sid, profile.id)


# Only the caller's own room; anything else is ignored
@socketio.on('join')
def handle_join(data):
    room = (data or {}).get('room')
    own_room = patient_room(session.get('profile_id'))
    if room != own_room:
        logger.warning("Client %s may not join room %s", request.sid, room)
        return
    join_room(room)
    logger.debug("Client %s joined room %s", request.sid, room)


@socketio.on('leave')
def handle_leave(data):
    room = (data or {}).get('room')
    if room:
        leave_room(room)
        logger.debug("Client %s left room %s", request.sid, room)
