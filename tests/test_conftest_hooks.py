from __future__ import annotations

from types import SimpleNamespace

import conftest


def _item(keywords, obj):
    return SimpleNamespace(keywords=keywords, obj=obj)


def test_plain_tests_are_left_to_pytest() -> None:
    def plain():
        pass

    assert conftest.pytest_pyfunc_call(_item({}, plain)) is None
    assert conftest.pytest_pyfunc_call(_item({"asyncio": True}, plain)) is None


def test_coroutine_tests_run_in_own_loop() -> None:
    calls = []

    async def coro(value):
        calls.append(value)

    item = SimpleNamespace(
        keywords={"asyncio": True},
        obj=coro,
        funcargs={"value": 7, "request": object()},
        _fixtureinfo=SimpleNamespace(argnames=("value",)),
    )

    assert conftest.pytest_pyfunc_call(item) is True
    assert calls == [7]
