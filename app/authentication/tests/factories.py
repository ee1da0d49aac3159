"""
Factory Boy factories for authentication models.

Provides realistic test data generation for:
- User: Internal user keyed by the identity provider's subject
- ExternalIdentity: The verified principal a request carries

Usage:
    from authentication.tests.factories import UserFactory, identity_for

    # Create a user with default values
    user = UserFactory()

    # The identity a signed-in request for that user would carry
    identity = identity_for(user)
"""

import factory

from authentication.backends import ExternalIdentity
from authentication.models import User


class UserFactory(factory.django.DjangoModelFactory):
    """
    Factory for User model.

    Examples:
        # Basic user
        user = UserFactory()

        # User with a specific display name
        user = UserFactory(name="Ada Lovelace")

        # Inactive user (deactivated)
        user = UserFactory(is_active=False)
    """

    class Meta:
        model = User
        skip_postgeneration_save = True

    external_id = factory.Sequence(lambda n: f"user_{n:04d}")
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    name = factory.Sequence(lambda n: f"User {n:04d}")
    avatar_url = ""
    is_active = True
    is_staff = False

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Override create to use UserManager.create_user()."""
        return model_class.objects.create_user(
            external_id=kwargs.pop("external_id"),
            email=kwargs.pop("email"),
            **kwargs,
        )


def identity_for(user: User) -> ExternalIdentity:
    """Build the verified identity a request from this user would carry."""
    return ExternalIdentity(
        subject=user.external_id,
        email=user.email,
        name=user.name,
        picture=user.avatar_url,
    )
