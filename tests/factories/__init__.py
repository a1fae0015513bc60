"""
Data factories for test data generation.

Factories use factory-boy to create realistic test data with sensible defaults.
All factories support async creation via create_async() method.

Usage:
    from tests.factories import UserFactory

    user = await UserFactory.create_async(db_session, email="custom@test.com")
    student = await UserFactory.create_student_async(db_session, registration_number="DENT/2023/007")
"""

from tests.factories.user import DEFAULT_PASSWORD, UserFactory

__all__ = [
    "DEFAULT_PASSWORD",
    "UserFactory",
]
