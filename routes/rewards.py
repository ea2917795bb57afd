"""
Reward routes - customer reward list, admin listing and redemption
"""
from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.notification import Notification
from models.reward import Reward, RewardStatus
from services.errors import InvalidRewardTransition
from utils.activity_logger import log_activity
from utils.rbac import current_user_id, require_admin

rewards_bp = Blueprint('rewards', __name__)


@rewards_bp.route('/', methods=['GET'])
@jwt_required()
def get_my_rewards():
    """Get current user's rewards"""
    try:
        rewards = (
            Reward.query.filter_by(user_id=current_user_id())
            .order_by(Reward.earned_at.desc(), Reward.id.desc())
            .all()
        )
        return jsonify({
            'success': True,
            'data': [r.to_dict() for r in rewards]
        }), 200
    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500


@rewards_bp.route('/all', methods=['GET'])
@jwt_required()
@require_admin
def get_all_rewards():
    """Get all rewards (admin), optionally filtered by status"""
    try:
        status = (request.args.get('status') or '').strip()
        if status and status not in RewardStatus.ALL:
            return jsonify({
                'success': False,
                'message': f"Invalid status. Use one of: {', '.join(RewardStatus.ALL)}"
            }), 400

        query = Reward.query
        if status:
            query = query.filter(Reward.status == status)

        rewards = query.order_by(Reward.earned_at.desc(), Reward.id.desc()).all()
        return jsonify({
            'success': True,
            'data': [r.to_dict(include_user=True) for r in rewards]
        }), 200
    except Exception as e:
        return jsonify({'success': False, 'message': str(e)}), 500


@rewards_bp.route('/<int:reward_id>/redeem', methods=['POST'])
@jwt_required()
@require_admin
def redeem_reward(reward_id):
    """Redeem an earned reward (admin) and notify its owner"""
    try:
        reward = Reward.query.filter_by(id=reward_id).with_for_update().first()
        if not reward:
            db.session.rollback()
            return jsonify({'success': False, 'message': 'Reward not found'}), 404

        try:
            reward.redeem()
        except InvalidRewardTransition as e:
            db.session.rollback()
            return jsonify({'success': False, 'message': str(e)}), 400

        db.session.add(Notification(
            user_id=reward.user_id,
            message=current_app.config.get(
                'REWARD_REDEEMED_MESSAGE',
                'Your free meal reward has been redeemed! Enjoy your meal!',
            ),
        ))
        db.session.commit()

        current_app.logger.info("Reward %s redeemed for user %s", reward_id, reward.user_id)
        log_activity(
            user_id=current_user_id(),
            action='reward_redeemed',
            entity_type='reward',
            entity_id=reward_id,
            details={'owner_id': reward.user_id},
        )

        return jsonify({
            'success': True,
            'message': 'Reward redeemed successfully',
            'data': reward.to_dict()
        }), 200

    except SQLAlchemyError as e:
        db.session.rollback()
        return jsonify({'success': False, 'message': f'Database error: {str(e)}'}), 500
