"""
Business services (reward eligibility, per-user locking, domain errors)
"""
