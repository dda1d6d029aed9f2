from flask import jsonify

def response(status_code, message, data=None):
    """
    Standard API envelope
    """
    res_structure = {
        "status": status_code,
        "message": message,
        "data": data
    }
    return jsonify(res_structure), status_code

def success(data=None, message="Success", status_code=200):
    return response(status_code, message, data)

def error(message="Something went wrong", status_code=400, data=None):
    return response(status_code, message, data)

def portal_error(exc):
    """Render a PortalError raised anywhere below a route."""
    return error(exc.message, exc.status_code, exc.details or None)

def isoformat(value):
    return value.isoformat() if value else None
