"""Domain errors raised by models and services.

Routes translate these into JSON error responses.
"""


class MealRewardsError(Exception):
    """Base class for application errors."""


class StoreUnavailable(MealRewardsError):
    """A read or write against the meal/reward/notification tables failed.

    The session has already been rolled back when this is raised.
    """


class SmsDeliveryFailed(MealRewardsError):
    """The SMS gateway did not accept a message."""


class InvalidMealTransition(MealRewardsError):
    def __init__(self, meal_id, current_status, target_status):
        self.meal_id = meal_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f'Meal {meal_id} cannot move from {current_status} to {target_status}'
        )


class InvalidRewardTransition(MealRewardsError):
    def __init__(self, reward_id, current_status, target_status):
        self.reward_id = reward_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f'Reward cannot be {target_status.lower()} (current status: {current_status})'
        )
