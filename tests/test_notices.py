"""
Tests for NoticeCenter.
"""

import asyncio

import pytest

from lazypage.notices import NoticeCenter


class TestNoticeCenter:
    """Tests for NoticeCenter."""

    def test_show_outside_loop_persists(self):
        """Test notices shown without a running loop stay until dismissed."""
        center = NoticeCenter()

        notice = center.show("Something went wrong.")

        assert center.active() == [notice]
        assert notice.expires_at == notice.created_at + 4.0

    def test_dismiss(self):
        """Test dismissing removes the notice."""
        center = NoticeCenter()
        notice = center.show("oops", level="warning")

        center.dismiss(notice)
        center.dismiss(notice)

        assert notice.dismissed is True
        assert center.active() == []

    @pytest.mark.asyncio
    async def test_expires_after_duration(self):
        """Test notices disappear on their own."""
        center = NoticeCenter(default_duration=0.01)
        center.show("short lived")

        await asyncio.sleep(0.05)

        assert center.active() == []

    @pytest.mark.asyncio
    async def test_clear_cancels_expiry(self):
        """Test clear dismisses everything and drops pending timers."""
        center = NoticeCenter(default_duration=10)
        center.show("one")
        center.show("two", duration=20)

        center.clear()

        assert center.active() == []
        assert center._expiry == {}

    def test_dismiss_targets_the_given_notice(self):
        """Test identical-looking notices are dismissed individually."""
        center = NoticeCenter()
        first = center.show("Something went wrong.")
        second = center.show("Something went wrong.")
        first.created_at = second.created_at = 1000.0

        center.dismiss(second)

        assert center.active() == [first]
        assert first.dismissed is False
