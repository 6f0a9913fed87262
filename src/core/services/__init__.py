"""
Business services for Tripbook.

- container.py: store, repository and provider wiring per execution environment
- users.py: registration, login lockout, profile and user administration
- trips.py: trip aggregate operations
- payments.py: payment CRUD, refunds and bulk creation
- stats.py: statistics engine over payments and trips
- rate_limit.py: sliding-window rate limiter and its stores
- listing.py: pagination and sorting for list endpoints
"""

__all__: list[str] = []
