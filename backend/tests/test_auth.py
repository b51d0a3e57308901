from decimal import Decimal

from sqlalchemy import select

from core.security.hashing import hash_password, verify_password
from core.security.token import create_access_token, verify_access_token
from models import VirtualAccount
from services.common.errors import ConflictError, ValidationError

def test_password_hashing():
    hashed = hash_password("password123")

    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("wrong-password", hashed)

def test_access_token_round_trip():
    token = create_access_token(7, "user@example.com")

    assert verify_access_token(token).user_id == 7
    assert verify_access_token("not-a-jwt") is None

async def test_register_opens_funded_account(container, session_factory):
    result = await container.users.register("new@example.com", "password123", "newbie")

    assert result.ok
    assert result.value.access_token
    assert result.value.refresh_token
    async with session_factory() as session:
        account = (await session.execute(
            select(VirtualAccount).where(VirtualAccount.user_id == result.value.user_id)
        )).scalars().one()
    assert account.base_cash == Decimal("10000000")

async def test_duplicate_email_and_nickname(container, create_user):
    await create_user("taken")

    email = await container.users.register("taken@example.com", "password123", "other")
    assert isinstance(email.error, ConflictError)
    assert email.reason == "Email already exists"

    nickname = await container.users.register("fresh@example.com", "password123", "taken")
    assert nickname.reason == "Nickname already exists"

async def test_login(container, create_user):
    await create_user("alice")

    assert (await container.users.login("alice@example.com", "password123")).ok

    wrong = await container.users.login("alice@example.com", "nope-nope")
    assert isinstance(wrong.error, ValidationError)
    assert wrong.reason == "Invalid credentials"

async def test_refresh_token_is_single_use(container, create_user):
    await create_user("bob")
    login = (await container.users.login("bob@example.com", "password123")).value

    refreshed = await container.users.refresh(login.refresh_token)
    assert refreshed.ok
    assert refreshed.value.refresh_token != login.refresh_token

    reused = await container.users.refresh(login.refresh_token)
    assert reused.reason == "Invalid refresh token"

async def test_deactivated_user_cannot_login(container, create_user):
    user_id = await create_user("carol")
    assert (await container.users.deactivate_user(user_id)).ok

    result = await container.users.login("carol@example.com", "password123")
    assert result.reason == "Account is deactivated"
