"""ActivityLog - append-only audit trail of state-changing actions."""
from extensions import db
from utils.db_helpers import utcnow, isoformat, load_json


class ActivityLog(db.Model):
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    user_name = db.Column(db.String(150))
    user_role = db.Column(db.String(20))

    action = db.Column(db.String(50), nullable=False, index=True)
    category = db.Column(db.String(30), nullable=False, index=True)

    target_type = db.Column(db.String(30))
    target_id = db.Column(db.String(64))
    target_name = db.Column(db.String(255))

    description = db.Column(db.Text, nullable=False)
    details = db.Column(db.Text)  # JSON object

    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(255))
    success = db.Column(db.Boolean, nullable=False, default=True)
    error_message = db.Column(db.Text)

    def to_dict(self):
        return {
            'id': self.id,
            'createdAt': isoformat(self.created_at),
            'userId': self.user_id,
            'userName': self.user_name,
            'userRole': self.user_role,
            'action': self.action,
            'category': self.category,
            'targetType': self.target_type,
            'targetId': self.target_id,
            'targetName': self.target_name,
            'description': self.description,
            'details': load_json(self.details, {}),
            'ipAddress': self.ip_address,
            'success': self.success,
            'errorMessage': self.error_message,
        }

    def __repr__(self):
        return f'<ActivityLog {self.category}/{self.action} target={self.target_id}>'
