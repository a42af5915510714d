"""JSON response envelope shared by every API blueprint."""
from flask import jsonify, request

from utils.errors import ValidationError


def json_success(message=None, message_ar=None, status=200, **payload):
    body = {'success': True}
    if message:
        body['message'] = message
    if message_ar:
        body['messageAr'] = message_ar
    body.update(payload)
    return jsonify(body), status


def get_json_body():
    """Return the request's JSON object or raise ``ValidationError``."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object', 'يجب أن يكون جسم الطلب كائن JSON')
    return data


def client_info():
    """``(ip_address, user_agent)`` of the current request."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    ip = forwarded.split(',')[0].strip() if forwarded else (request.remote_addr or 'unknown')
    return ip, request.headers.get('User-Agent', 'unknown')
