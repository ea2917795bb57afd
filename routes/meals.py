"""
Meal routes - receipt submissions, confirmation, customer dashboard
"""
from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.meal import Meal, MealStatus
from models.notification import Notification
from models.reward import Reward, RewardStatus
from services.errors import InvalidMealTransition, StoreUnavailable
from services.reward_engine import get_reward_engine
from utils.activity_logger import log_activity
from utils.clock import utcnow
from utils.rbac import current_user_id, require_admin

meals_bp = Blueprint('meals', __name__)


def _parse_amount(value, field):
    if value is None or value == '':
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f'{field} must be a number')
    if amount < 0:
        raise ValueError(f'{field} must not be negative')
    return amount.quantize(Decimal('0.01'))


@meals_bp.route('/', methods=['POST'])
@jwt_required()
def submit_meal():
    """
    Record a submitted receipt.

    Request body:
    {
        "receipt_ref": "string" (optional),
        "extracted_total": number (optional),
        "extracted_date": "string" (optional),
        "extracted_restaurant": "string" (optional),
        "confident": bool - extraction is trusted, verify immediately
    }
    """
    try:
        user_id = current_user_id()
        data = request.get_json() or {}

        try:
            extracted_total = _parse_amount(data.get('extracted_total'), 'extracted_total')
        except ValueError as e:
            return jsonify({'success': False, 'message': str(e)}), 400

        confident = data.get('confident') is True
        now = utcnow()

        meal = Meal(
            user_id=user_id,
            receipt_ref=(data.get('receipt_ref') or '').strip() or None,
            extracted_total=extracted_total,
            extracted_date=(data.get('extracted_date') or '').strip() or None,
            extracted_restaurant=(data.get('extracted_restaurant') or '').strip() or None,
            status=MealStatus.VERIFIED if confident else MealStatus.PENDING,
            created_at=now,
            verified_at=now if confident else None,
        )
        db.session.add(meal)
        db.session.flush()
        meal_data = meal.to_dict()
        db.session.commit()

        reward = None
        if confident:
            reward = get_reward_engine().evaluate(user_id).to_dict()

        return jsonify({
            'success': True,
            'message': 'Meal recorded',
            'data': {
                'meal_id': meal_data['id'],
                'meal': meal_data,
                'extracted_total': meal_data['extracted_total'],
                'extracted_date': meal_data['extracted_date'],
                'extracted_restaurant': meal_data['extracted_restaurant'],
                'needs_manual_entry': not confident,
                'reward': reward,
            }
        }), 201

    except StoreUnavailable as e:
        return jsonify({'success': False, 'message': str(e)}), 500
    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500


@meals_bp.route('/<int:meal_id>/confirm', methods=['POST'])
@jwt_required()
def confirm_meal(meal_id):
    """Confirm a pending meal (with optional manual total)"""
    try:
        user_id = current_user_id()
        data = request.get_json(silent=True) or {}

        try:
            manual_total = _parse_amount(data.get('manual_total'), 'manual_total')
        except ValueError as e:
            return jsonify({'success': False, 'message': str(e)}), 400

        meal = (
            Meal.query.filter_by(id=meal_id, user_id=user_id)
            .with_for_update()
            .first()
        )
        if not meal:
            db.session.rollback()
            return jsonify({'success': False, 'message': 'Meal not found'}), 404

        try:
            meal.verify(manual_total=manual_total)
        except InvalidMealTransition:
            status = meal.status
            db.session.rollback()
            return jsonify({
                'success': False,
                'message': f'Meal already {status.lower()}'
            }), 400

        db.session.commit()

        decision = get_reward_engine().evaluate(user_id)

        return jsonify({
            'success': True,
            'message': 'Meal confirmed',
            'data': {
                'meal': meal.to_dict(),
                'reward': decision.to_dict(),
            }
        }), 200

    except StoreUnavailable as e:
        return jsonify({'success': False, 'message': str(e)}), 500
    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500


@meals_bp.route('/<int:meal_id>/reject', methods=['POST'])
@jwt_required()
@require_admin
def reject_meal(meal_id):
    """Reject a pending meal (admin)"""
    try:
        meal = Meal.query.filter_by(id=meal_id).with_for_update().first()
        if not meal:
            db.session.rollback()
            return jsonify({'success': False, 'message': 'Meal not found'}), 404

        try:
            meal.reject()
        except InvalidMealTransition as e:
            db.session.rollback()
            return jsonify({'success': False, 'message': str(e)}), 400

        db.session.commit()

        log_activity(
            user_id=current_user_id(),
            action='meal_rejected',
            entity_type='meal',
            entity_id=meal_id,
            details={'owner_id': meal.user_id},
        )

        return jsonify({
            'success': True,
            'message': 'Meal rejected',
            'data': meal.to_dict()
        }), 200

    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500


@meals_bp.route('/', methods=['GET'])
@jwt_required()
def get_meals():
    """Get the current user's meals (paginated, newest first)"""
    try:
        user_id = current_user_id()
        page = request.args.get('page', 1, type=int)
        per_page = request.args.get('per_page', 20, type=int)

        pagination = (
            Meal.query.filter_by(user_id=user_id)
            .order_by(Meal.created_at.desc(), Meal.id.desc())
            .paginate(page=page, per_page=per_page, error_out=False)
        )

        return jsonify({
            'success': True,
            'data': {
                'meals': [m.to_dict() for m in pagination.items],
                'total': pagination.total,
                'pages': pagination.pages,
                'current_page': page
            }
        }), 200

    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500


@meals_bp.route('/dashboard', methods=['GET'])
@jwt_required()
def get_dashboard():
    """Progress toward the next free meal"""
    try:
        user_id = current_user_id()
        engine = get_reward_engine()
        period_start, period_end = engine.window_for(engine.clock())

        meals_in_period = Meal.count_verified_since(user_id, period_start)

        recent_meals = (
            Meal.query.filter_by(user_id=user_id, status=MealStatus.VERIFIED)
            .order_by(Meal.created_at.desc())
            .limit(5)
            .all()
        )
        active_rewards = (
            Reward.query.filter_by(user_id=user_id, status=RewardStatus.EARNED)
            .order_by(Reward.earned_at.desc())
            .all()
        )
        notifications = (
            Notification.query.filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc())
            .limit(10)
            .all()
        )

        return jsonify({
            'success': True,
            'data': {
                'meals_in_period': meals_in_period,
                'meals_required': engine.meals_required,
                'period_start': period_start.isoformat(),
                'period_end': period_end.isoformat(),
                'recent_meals': [m.to_dict() for m in recent_meals],
                'active_rewards': [r.to_dict() for r in active_rewards],
                'notifications': [n.to_dict() for n in notifications],
            }
        }), 200

    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500
