"""
Notification routes
"""
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.notification import Notification
from utils.rbac import current_user_id

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('/', methods=['GET'])
@jwt_required()
def get_notifications():
    """Get user's notifications, newest first"""
    try:
        notifications = (
            Notification.query.filter_by(user_id=current_user_id())
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .all()
        )
        return jsonify({
            'success': True,
            'data': [n.to_dict() for n in notifications],
            'unread': sum(1 for n in notifications if not n.is_read),
        }), 200
    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@jwt_required()
def mark_as_read(notification_id):
    """Mark one of the user's notifications as read"""
    try:
        Notification.query.filter_by(
            id=notification_id, user_id=current_user_id()
        ).update({'is_read': True})
        db.session.commit()
        return jsonify({'success': True, 'message': 'Notification marked as read'}), 200
    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500


@notifications_bp.route('/read-all', methods=['POST'])
@jwt_required()
def mark_all_as_read():
    """Mark all of the user's notifications as read"""
    try:
        updated = Notification.query.filter_by(
            user_id=current_user_id(), is_read=False
        ).update({'is_read': True})
        db.session.commit()
        return jsonify({
            'success': True,
            'message': 'All notifications marked as read',
            'data': {'updated': updated}
        }), 200
    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500
