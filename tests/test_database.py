import asyncio

import aiosqlite
import pytest

from commands.user import sync_server_configs
from database import bad_actors, scores, server_configs, users
from database.bad_actors import BadActorQueryType
from database.models import ActionLevel, BadActorType, CreateBadActorOptions, UserType
from honeypot.channels import honeypot_channels
from services.cleanup_service import CleanupService

def report(user_id: int, actor_type=BadActorType.SPAM) -> CreateBadActorOptions:
    return CreateBadActorOptions(
        user_id=user_id,
        actor_type=actor_type,
        origin_guild_id=1,
        updated_by_user_id=99,
        explanation="spam links"
    )

@pytest.mark.asyncio
async def test_bad_actor_lifecycle(database):
    created = await bad_actors.create(report(5))

    assert created.is_active is True
    assert created.actor_type is BadActorType.SPAM
    assert await bad_actors.has_active_case(5) is True

    deactivated = await bad_actors.deactivate(created.id, "false alarm", 100)

    assert deactivated.is_active is False
    assert deactivated.explanation == "false alarm"
    assert deactivated.updated_by_user_id == 100
    assert await bad_actors.has_active_case(5) is False

@pytest.mark.asyncio
async def test_latest_filters_by_state(database):
    first = await bad_actors.create(report(1))
    await bad_actors.create(report(2))
    await bad_actors.deactivate(first.id, "resolved", 9)

    assert len(await bad_actors.get_latest(10)) == 2
    assert [b.user_id for b in await bad_actors.get_latest(10, BadActorQueryType.ACTIVE)] == [2]
    assert [b.user_id for b in await bad_actors.get_latest(10, BadActorQueryType.INACTIVE)] == [1]
    assert len(await bad_actors.get_latest(1)) == 1

@pytest.mark.asyncio
async def test_screenshot_and_delete(database):
    created = await bad_actors.create(report(3))

    updated = await bad_actors.update_screenshot(created.id, "2026-01-01_3.png", 7)
    assert updated.screenshot_proof == "2026-01-01_3.png"

    deleted = await bad_actors.delete(created.id)
    assert deleted.screenshot_proof == "2026-01-01_3.png"
    assert await bad_actors.get_by_id(created.id) is None
    assert await bad_actors.delete(created.id) is None

@pytest.mark.asyncio
async def test_scores_increase_together(database):
    await scores.create_or_increase_scoreboards(10, 20)
    await scores.create_or_increase_scoreboards(10, 21)

    assert (await scores.get_user_score(10)).score == 2
    assert (await scores.get_guild_score(20)).score == 1
    assert (await scores.get_guild_score(21)).score == 1
    assert (await scores.get_user_score(11)).score == 0

    top = await scores.get_top_users()
    assert [(s.discord_id, s.score) for s in top] == [(10, 2)]
    assert len(await scores.get_top_guilds()) == 2

@pytest.mark.asyncio
async def test_failed_score_update_leaves_concurrent_writes_alone(database):
    await database.connection.execute("DROP TABLE guild_scores")
    await database.connection.commit()

    score_result, created = await asyncio.gather(
        scores.create_or_increase_scoreboards(10, 20),
        bad_actors.create(report(5)),
        return_exceptions=True
    )

    assert isinstance(score_result, aiosqlite.Error)
    assert (await scores.get_user_score(10)).score == 0
    assert created.user_id == 5
    assert (await bad_actors.get_by_id(created.id)).user_id == 5

@pytest.mark.asyncio
async def test_concurrent_score_updates_all_count(database):
    await asyncio.gather(*(scores.create_or_increase_scoreboards(10, 20) for _ in range(5)))

    assert (await scores.get_user_score(10)).score == 5
    assert (await scores.get_guild_score(20)).score == 5

@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(database):
    with pytest.raises(RuntimeError):
        async with database.transaction() as conn:
            await conn.execute("INSERT INTO admins (id) VALUES (1)")
            raise RuntimeError("boom")

    async with database.connection.execute("SELECT COUNT(*) AS n FROM admins") as cursor:
        assert (await cursor.fetchone())["n"] == 0

@pytest.mark.asyncio
async def test_config_update_skips_none(database):
    await server_configs.create_default_if_not_exists(1)

    updated = await server_configs.update(1, {
        "log_channel_id": 5,
        "spam_action_level": ActionLevel.BAN,
        "ignored_roles": [7, 8],
        "ping_users": True,
        "ban_reason": None,
    })

    assert updated.log_channel_id == 5
    assert updated.spam_action_level is ActionLevel.BAN
    assert updated.ignored_roles == [7, 8]
    assert updated.ping_users is True
    assert updated.ban_reason is None
    assert updated.bigotry_action_level is ActionLevel.NOTIFY

@pytest.mark.asyncio
async def test_config_update_rejects_unknown_columns(database):
    with pytest.raises(ValueError):
        await server_configs.update(1, {"guild_id": 2})

@pytest.mark.asyncio
async def test_config_is_kept_while_a_user_needs_it(database):
    await users.create(50, UserType.REPORTER, [1, 2])
    await server_configs.create_default_if_not_exists(1)
    await server_configs.create_default_if_not_exists(2)

    assert await server_configs.delete_if_needed(1) is None

    await users.update(50, guild_ids=[2])
    removed = await server_configs.delete_if_needed(1)
    assert removed.guild_id == 1
    assert await server_configs.get_by_guild_id(1) is None
    assert await server_configs.get_by_guild_id(2) is not None

@pytest.mark.asyncio
async def test_delete_orphaned(database):
    await users.create(50, UserType.LISTENER, [1])
    for guild_id in (1, 2, 3):
        await server_configs.create_default_if_not_exists(guild_id)

    removed = await server_configs.delete_orphaned()
    assert sorted(c.guild_id for c in removed) == [2, 3]
    assert [c.guild_id for c in await server_configs.get_all()] == [1]

@pytest.mark.asyncio
async def test_honeypot_channel_roundtrip(database):
    assert await server_configs.set_honeypot_channel(1, 100) is None
    assert await server_configs.set_honeypot_channel(1, 101) == 100
    assert await server_configs.get_honeypot_channels() == {101}

    assert await server_configs.remove_honeypot_channel(1) == 101
    assert await server_configs.remove_honeypot_channel(1) is None
    assert await server_configs.get_honeypot_channels() == set()

@pytest.mark.asyncio
async def test_users(database):
    await users.create(60, UserType.REPORTER, [1, 2])

    with pytest.raises(users.UserAlreadyExists):
        await users.create(60, UserType.LISTENER, [3])

    assert [u.user_id for u in await users.get_by_guild(2)] == [60]
    assert await users.get_by_guild(3) == []

    updated = await users.update(60, user_type=UserType.LISTENER)
    assert updated.user_type is UserType.LISTENER
    assert updated.guild_ids == [1, 2]

    removed = await users.delete(60)
    assert removed.user_id == 60
    assert await users.get(60) is None

@pytest.mark.asyncio
async def test_reclaimed_configs_drop_their_honeypot(database):
    await users.create(50, UserType.REPORTER, [1, 2])
    await server_configs.set_honeypot_channel(1, 100)
    await server_configs.set_honeypot_channel(2, 200)
    honeypot_channels.add(100)
    honeypot_channels.add(200)

    await users.update(50, guild_ids=[2])
    await sync_server_configs([1, 2], [2])

    assert 100 not in honeypot_channels
    assert 200 in honeypot_channels
    honeypot_channels.discard(200)

@pytest.mark.asyncio
async def test_cleanup_task_drops_orphaned_honeypots(database, bot):
    await server_configs.set_honeypot_channel(3, 300)
    honeypot_channels.add(300)

    cog = CleanupService.__new__(CleanupService)
    cog.bot = bot
    await CleanupService.cleanup_task.coro(cog)

    assert await server_configs.get_by_guild_id(3) is None
    assert 300 not in honeypot_channels
