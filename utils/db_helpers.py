"""
Database query helpers.

Usage
-----
In any blueprint route or service function::

    from utils.db_helpers import get_or_404, branch_scoped, paginate

    # Fetch a single record (raises NotFoundError if missing)
    pending = get_or_404(PendingMember, pending_id, 'Pending member', 'العضو المعلق غير موجود')

    # Restrict a query to the caller's branch when they are a branch leader
    query = branch_scoped(PendingMember.query, PendingMember, current_user)
"""
import json
from datetime import datetime, timezone

from utils.errors import NotFoundError


def utcnow():
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() if value else None


def get_or_404(model, record_id, label=None, message_ar=None):
    """Return ``model`` row *record_id* or raise ``NotFoundError``."""
    record = None
    if record_id is not None:
        record = model.query.filter_by(id=record_id).first()
    if record is None:
        label = label or model.__name__
        raise NotFoundError(f'{label} not found', message_ar,
                            resource_type=model.__name__, resource_id=str(record_id))
    return record


def branch_scoped(query, model, user):
    """Filter *query* to ``user.assigned_branch`` when *user* is a branch leader.

    Models without a ``branch`` column are returned unfiltered.
    """
    from utils.permissions import Role, to_role

    if not hasattr(model, 'branch'):
        return query
    if to_role(user.role) == Role.BRANCH_LEADER and user.assigned_branch:
        return query.filter(model.branch == user.assigned_branch)
    return query


def paginate(query, page, limit, max_limit=100):
    """Return ``(items, pagination_dict)`` for a query."""
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or 20), 1), max_limit)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': (total + limit - 1) // limit,
    }


def load_json(value, default=None):
    """Parse a JSON text column, returning *default* on empty or invalid data."""
    if not value:
        return default
    try:
        return json.loads(value)
    except (ValueError, TypeError):
        return default
