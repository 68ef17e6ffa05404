"""
Integration tests for the encrypted user store.
Real codec, real SQLite file; the raw table is inspected directly.
"""
import pytest
from structlog.testing import capture_logs

from user_directory.core.database import build_session_factory
from user_directory.core.encryption import CIPHERTEXT_PREFIX, FernetFieldCodec, KeyProvider
from user_directory.core.exceptions import CryptoError
from user_directory.repositories.user_repository import UserRepository
from tests.factories import UserCreateFactory


pytestmark = [pytest.mark.integration, pytest.mark.database]


@pytest.mark.asyncio
@pytest.mark.security
async def test_email_is_never_stored_in_plaintext(user_repository, raw_rows):
    users = UserCreateFactory.build_batch(5)
    for user in users:
        await user_repository.create(user.name, str(user.email))

    rows = raw_rows()

    assert len(rows) == 5
    for (_, name, stored_email), user in zip(rows, users):
        assert name == user.name
        assert stored_email.startswith(CIPHERTEXT_PREFIX)
        assert stored_email != str(user.email)
        assert "@" not in stored_email


@pytest.mark.asyncio
async def test_add_list_remove_scenario(user_repository, raw_rows):
    await user_repository.create("Bob", "bob@example.com")

    users = await user_repository.list()
    assert [(u.name, u.email) for u in users] == [("Bob", "bob@example.com")]
    stored_email = raw_rows()[0][2]
    assert stored_email.startswith(CIPHERTEXT_PREFIX)
    assert stored_email != "bob@example.com"

    await user_repository.remove(users[0].id)

    assert await user_repository.list() == []
    assert raw_rows() == []


@pytest.mark.asyncio
async def test_list_returns_insertion_order(user_repository):
    for name in ("A", "B", "C"):
        await user_repository.create(name, f"{name.lower()}@example.com")

    users = await user_repository.list()

    assert [u.name for u in users] == ["A", "B", "C"]
    assert [u.email for u in users] == ["a@example.com", "b@example.com", "c@example.com"]
    assert [u.id for u in users] == sorted(u.id for u in users)


@pytest.mark.asyncio
async def test_remove_is_idempotent(user_repository):
    await user_repository.create("Alice", "alice@example.com")
    await user_repository.create("Bob", "bob@example.com")
    alice, bob = await user_repository.list()

    await user_repository.remove(alice.id)
    await user_repository.remove(alice.id)
    await user_repository.remove(12345)

    assert await user_repository.list() == [bob]


@pytest.mark.asyncio
@pytest.mark.edge_case
async def test_ids_are_not_reused_after_delete(user_repository):
    await user_repository.create("Alice", "alice@example.com")
    await user_repository.create("Bob", "bob@example.com")
    _, bob = await user_repository.list()

    await user_repository.remove(bob.id)
    await user_repository.create("Carol", "carol@example.com")

    carol = (await user_repository.list())[-1]
    assert carol.id > bob.id


@pytest.mark.asyncio
@pytest.mark.edge_case
async def test_empty_and_unicode_emails_round_trip(user_repository, raw_rows):
    await user_repository.create("Empty", "")
    await user_repository.create("Ünïcødé", "ünïcødé@例え.jp")

    users = await user_repository.list()

    assert [u.email for u in users] == ["", "ünïcødé@例え.jp"]
    assert all(row[2].startswith(CIPHERTEXT_PREFIX) for row in raw_rows())


@pytest.mark.asyncio
@pytest.mark.security
async def test_corrupted_row_fails_list(user_repository, raw_rows, corrupt_email):
    await user_repository.create("Alice", "alice@example.com")
    await user_repository.create("Bob", "bob@example.com")
    ciphertext = raw_rows()[1][2]
    corrupt_email(2, ciphertext[:-8])

    with pytest.raises(CryptoError):
        await user_repository.list()


@pytest.mark.asyncio
@pytest.mark.security
async def test_legacy_plaintext_row_fails_list(user_repository, corrupt_email):
    await user_repository.create("Alice", "alice@example.com")
    corrupt_email(1, "alice@example.com")

    with pytest.raises(CryptoError):
        await user_repository.list()


@pytest.mark.asyncio
@pytest.mark.security
async def test_different_key_cannot_read_store(user_repository, session_factory):
    await user_repository.create("Alice", "alice@example.com")
    other_key = KeyProvider.ephemeral()
    other_key.initialize()
    other_repository = UserRepository(
        codec=FernetFieldCodec(other_key),
        session_factory=session_factory
    )

    with pytest.raises(CryptoError):
        await other_repository.list()


@pytest.mark.asyncio
async def test_store_survives_restart_with_same_key(codec, test_engine):
    first = UserRepository(codec=codec, session_factory=build_session_factory(test_engine))
    await first.create("Alice", "alice@example.com")

    second = UserRepository(codec=codec, session_factory=build_session_factory(test_engine))

    assert [u.email for u in await second.list()] == ["alice@example.com"]


@pytest.mark.asyncio
@pytest.mark.security
async def test_logs_never_contain_email_or_ciphertext(user_repository, raw_rows, corrupt_email):
    with capture_logs() as cap_logs:
        await user_repository.create("Alice", "alice@example.com")
        await user_repository.list()
        ciphertext = raw_rows()[0][2]
        corrupt_email(1, "garbage")
        with pytest.raises(CryptoError):
            await user_repository.list()
        await user_repository.remove(1)

    rendered = repr(cap_logs)
    assert cap_logs
    assert "alice@example.com" not in rendered
    assert ciphertext not in rendered
    assert any(entry["event"] == "Failed to decrypt user rows" for entry in cap_logs)
