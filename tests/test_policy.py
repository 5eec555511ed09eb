import pytest
from beanie import PydanticObjectId

from devicehub.core.errors import Forbidden
from devicehub.core.policy import Action, authorize, can_assign_role, is_allowed, owner_filter
from devicehub.models.user import User, UserRole


def _user(role: UserRole) -> User:
    return User(
        id=PydanticObjectId(),
        name=role.value,
        email=f"{role.value}@devicehub.io",
        hashed_password="x",
        role=role,
    )


@pytest.fixture
def people(db):
    return {role: _user(role) for role in UserRole}


@pytest.mark.parametrize("action", [Action.TRANSITION_BORROW, Action.TRANSITION_RENEWAL,
                                    Action.MANAGE_DEVICES, Action.VIEW_AUDIT])
async def test_admin_only_actions(people, action):
    assert not is_allowed(people[UserRole.USER], action)
    assert is_allowed(people[UserRole.ADMIN], action)
    assert is_allowed(people[UserRole.SUPERUSER], action)


@pytest.mark.parametrize("action", [Action.DELETE_USER, Action.RESET_PASSWORD, Action.TOGGLE_USER_STATUS])
async def test_superuser_only_actions(people, action):
    assert not is_allowed(people[UserRole.USER], action)
    assert not is_allowed(people[UserRole.ADMIN], action)
    assert is_allowed(people[UserRole.SUPERUSER], action)


async def test_renewal_is_owner_only_even_for_admins(people):
    owner = people[UserRole.USER]
    assert is_allowed(owner, Action.CREATE_RENEWAL, owner.id)
    assert not is_allowed(people[UserRole.ADMIN], Action.CREATE_RENEWAL, owner.id)
    with pytest.raises(Forbidden, match="your own loans"):
        authorize(people[UserRole.SUPERUSER], Action.CREATE_RENEWAL, owner.id)


async def test_return_is_owner_or_admin(people):
    owner = people[UserRole.USER]
    stranger = _user(UserRole.USER)
    assert is_allowed(owner, Action.CREATE_RETURN, owner.id)
    assert is_allowed(people[UserRole.ADMIN], Action.CREATE_RETURN, owner.id)
    assert not is_allowed(stranger, Action.CREATE_RETURN, owner.id)


async def test_ownership_compares_string_and_object_ids(people):
    owner = people[UserRole.USER]
    assert is_allowed(owner, Action.VIEW_REQUEST, str(owner.id))


async def test_role_assignment(people):
    assert can_assign_role(people[UserRole.SUPERUSER], UserRole.ADMIN)
    assert can_assign_role(people[UserRole.ADMIN], UserRole.USER)
    assert not can_assign_role(people[UserRole.ADMIN], UserRole.ADMIN)
    assert not can_assign_role(people[UserRole.USER], UserRole.USER)


async def test_owner_filter_scopes_non_admins(people):
    owner = people[UserRole.USER]
    assert owner_filter(owner) == {"user_id": owner.id}
    assert owner_filter(people[UserRole.ADMIN]) == {}
