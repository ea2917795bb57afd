"""
Admin routes - dashboard stats, user management, SMS broadcast
"""
from datetime import datetime

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.meal import Meal, MealStatus
from models.notification import SmsBroadcast
from models.reward import Reward, RewardStatus
from models.user import ROLE_ADMIN, ROLE_USER, User
from services.reward_engine import get_reward_engine
from utils.activity_logger import log_activity
from utils.clock import subtract_months, utcnow
from utils.rbac import current_user_id, require_admin
from utils.sms import SmsGateway

admin_bp = Blueprint('admin', __name__)

_ROLES = {ROLE_USER, ROLE_ADMIN}


@admin_bp.route('/dashboard', methods=['GET'])
@jwt_required()
@require_admin
def get_dashboard():
    """Headline numbers for the admin home screen"""
    try:
        now = utcnow()
        today = datetime(now.year, now.month, now.day)

        total_users = User.query.filter_by(role=ROLE_USER).count()
        meals_today = Meal.query.filter(Meal.created_at >= today).count()
        active_rewards = Reward.query.filter_by(status=RewardStatus.EARNED).count()
        recent_meals = Meal.query.order_by(Meal.created_at.desc()).limit(10).all()

        return jsonify({
            'success': True,
            'data': {
                'total_users': total_users,
                'meals_today': meals_today,
                'active_rewards': active_rewards,
                'recent_meals': [m.to_dict() for m in recent_meals],
            }
        }), 200
    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500


@admin_bp.route('/users', methods=['GET'])
@jwt_required()
@require_admin
def get_users():
    """All users with their verified meal count and last meal time"""
    try:
        stats = (
            db.session.query(
                Meal.user_id.label('user_id'),
                func.count(Meal.id).label('meal_count'),
                func.max(Meal.created_at).label('last_meal_at'),
            )
            .filter(Meal.status == MealStatus.VERIFIED)
            .group_by(Meal.user_id)
            .subquery()
        )

        rows = (
            db.session.query(User, stats.c.meal_count, stats.c.last_meal_at)
            .outerjoin(stats, stats.c.user_id == User.id)
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

        users = []
        for user, meal_count, last_meal_at in rows:
            data = user.to_dict()
            data['meal_count'] = int(meal_count or 0)
            data['last_meal_at'] = last_meal_at.isoformat() if last_meal_at else None
            users.append(data)

        return jsonify({'success': True, 'data': users}), 200
    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@jwt_required()
@require_admin
def update_user(user_id):
    """Update display name, role or active flag"""
    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({'success': False, 'message': 'User not found'}), 404

        data = request.get_json() or {}
        changes = {}

        if 'display_name' in data:
            display_name = (data.get('display_name') or '').strip()
            user.display_name = display_name or None
            changes['display_name'] = user.display_name

        if 'role' in data:
            role = str(data.get('role') or '').strip().lower()
            if role not in _ROLES:
                return jsonify({
                    'success': False,
                    'message': f"Invalid role. Use one of: {', '.join(sorted(_ROLES))}"
                }), 400
            user.role = role
            changes['role'] = role

        if 'is_active' in data:
            user.is_active = bool(data.get('is_active'))
            changes['is_active'] = user.is_active

        db.session.commit()

        current_app.logger.info("User %s updated by admin %s", user_id, current_user_id())
        log_activity(
            user_id=current_user_id(),
            action='user_updated',
            entity_type='user',
            entity_id=user_id,
            details=changes,
        )

        return jsonify({
            'success': True,
            'message': 'User updated',
            'data': user.to_dict()
        }), 200

    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500


def _broadcast_gateway():
    engine = get_reward_engine()
    if engine.sms_gateway is not None:
        return engine.sms_gateway
    return SmsGateway.from_config(current_app.config)


@admin_bp.route('/sms-broadcast', methods=['POST'])
@jwt_required()
@require_admin
def send_sms_broadcast():
    """
    Send an SMS to every active customer.

    Request body:
    {
        "message": "string" (required, max 160 chars),
        "active_only": bool - only customers with a meal in the reward window
    }
    """
    try:
        data = request.get_json() or {}
        message = (data.get('message') or '').strip()
        max_length = current_app.config.get('SMS_BROADCAST_MAX_LENGTH', 160)

        if not message:
            return jsonify({'success': False, 'message': 'Message is required'}), 400
        if len(message) > max_length:
            return jsonify({
                'success': False,
                'message': f'Message too long (max {max_length} characters)'
            }), 400

        query = db.session.query(User.phone).filter(
            User.role == ROLE_USER,
            User.is_active.is_(True),
        )
        if data.get('active_only'):
            since = subtract_months(utcnow(), current_app.config.get('REWARD_WINDOW_MONTHS', 3))
            query = query.join(Meal, Meal.user_id == User.id).filter(Meal.created_at >= since)

        phones = sorted({row.phone for row in query.distinct().all() if row.phone})
        if not phones:
            return jsonify({'success': False, 'message': 'No recipients found'}), 400

        gateway = _broadcast_gateway()
        success_count = sum(1 for phone in phones if gateway.send(phone, message))

        admin_id = current_user_id()
        broadcast = SmsBroadcast(
            admin_user_id=admin_id,
            message=message,
            recipient_count=success_count,
        )
        db.session.add(broadcast)
        db.session.commit()

        current_app.logger.info(
            "SMS broadcast sent by admin %s: %s/%s recipients",
            admin_id, success_count, len(phones),
        )
        log_activity(
            user_id=admin_id,
            action='sms_broadcast',
            entity_type='sms_broadcast',
            entity_id=broadcast.id,
            details={'delivered': success_count, 'targeted': len(phones)},
        )

        return jsonify({
            'success': True,
            'message': f'SMS sent to {success_count}/{len(phones)} users',
            'data': {
                'recipient_count': success_count,
                'targeted': len(phones),
            }
        }), 200

    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500


@admin_bp.route('/sms-broadcasts', methods=['GET'])
@jwt_required()
@require_admin
def get_sms_broadcasts():
    """SMS broadcast history, newest first"""
    try:
        broadcasts = SmsBroadcast.query.order_by(
            SmsBroadcast.sent_at.desc(), SmsBroadcast.id.desc()
        ).all()
        return jsonify({
            'success': True,
            'data': [b.to_dict() for b in broadcasts]
        }), 200
    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500
