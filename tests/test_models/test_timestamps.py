"""Tests for the shared timestamp columns."""

from datetime import UTC

import pytest
from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncSession

from hostpanel.models import Node
from hostpanel.models.base import utcnow


def test_utcnow_is_timezone_aware():
    """Test that generated timestamps carry UTC tzinfo."""
    assert utcnow().tzinfo is UTC


def test_columns_store_time_zone():
    """Test that both timestamp columns are declared with time zone."""
    for column in ("created_at", "updated_at"):
        column_type = Node.__table__.c[column].type
        assert isinstance(column_type, DateTime)
        assert column_type.timezone is True


@pytest.mark.asyncio
async def test_insert_and_update_set_timestamps(db_session: AsyncSession):
    """Test that a record can be written and updated with default timestamps."""
    node = Node(name="ts-node", ip="10.0.9.1", port=8080, sftp_port=2022)
    assert node.created_at.tzinfo is UTC

    db_session.add(node)
    await db_session.commit()
    await db_session.refresh(node)
    first_update = node.updated_at

    node.location = "Berlin"
    db_session.add(node)
    await db_session.commit()
    await db_session.refresh(node)

    assert node.created_at is not None
    assert node.updated_at.replace(tzinfo=None) >= first_update.replace(tzinfo=None)
