"""
User factories for testing.
Uses Factory Boy to generate realistic test data with Faker.
"""
import factory
from factory import Faker, Sequence

from user_directory.models.user import User
from user_directory.schemas.user_schemas import UserCreate


class UserCreateFactory(factory.Factory):
    """Factory for user creation payloads."""

    class Meta:
        model = UserCreate

    name = Faker('name')
    email = Faker('email')


class UserFactory(factory.Factory):
    """Factory for plaintext User values."""

    class Meta:
        model = User

    id = Sequence(lambda n: n + 1)
    name = Faker('name')
    email = Faker('email')
