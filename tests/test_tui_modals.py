"""Pilot tests for the quiz-type and timer modals."""
from __future__ import annotations

import pytest
from textual.app import App

from tutorly.engine.models import QuizType
from tutorly.tui.screens.quiz_type import QuizTypeScreen
from tutorly.tui.screens.timer import TimerScreen


class _HostApp(App):
    pass


async def _run_modal(screen, keys: list[str] | None = None, click: str | None = None):
    app = _HostApp()
    results: list = []
    async with app.run_test(size=(100, 40)) as pilot:
        app.push_screen(screen, callback=results.append)
        await pilot.pause()
        if click is not None:
            await pilot.click(click)
        for key in keys or []:
            await pilot.press(key)
        await pilot.pause()
    return results


@pytest.mark.asyncio
async def test_quiz_type_keyboard_shortcuts() -> None:
    assert await _run_modal(QuizTypeScreen("cells"), keys=["e"]) == [QuizType.EXTENDED_RESPONSE]
    assert await _run_modal(QuizTypeScreen("cells"), keys=["m"]) == [QuizType.MULTIPLE_CHOICE]


@pytest.mark.asyncio
async def test_quiz_type_escape_defers_choice() -> None:
    assert await _run_modal(QuizTypeScreen("cells"), keys=["escape"]) == [None]


@pytest.mark.asyncio
async def test_timer_preset_button() -> None:
    assert await _run_modal(TimerScreen(), click="#preset-45") == [45]


@pytest.mark.asyncio
async def test_timer_cancel() -> None:
    assert await _run_modal(TimerScreen(), keys=["escape"]) == [None]
