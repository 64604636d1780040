"""
Shared fakes for unit tests: an in-memory page that answers the DOM scripts
with canned data and records every call made against it.
"""

from pathlib import Path
from typing import Any

import pytest

from ooda_agent.dom.perception import load_script


class FakeLocator:
    def __init__(self, page: 'FakePage', kind: str, query: Any, matches: int):
        self.page = page
        self.kind = kind
        self.query = query
        self.matches = matches

    async def count(self) -> int:
        return self.matches

    @property
    def first(self) -> 'FakeLocator':
        return self

    async def click(self, timeout: float | None = None) -> None:
        self.page.calls.append(('click', self.kind, self.query))

    async def fill(self, value: str, timeout: float | None = None) -> None:
        self.page.calls.append(('fill', self.kind, self.query, value))


class FakeMouse:
    def __init__(self, page: 'FakePage'):
        self.page = page

    async def wheel(self, delta_x: float, delta_y: float) -> None:
        self.page.calls.append(('wheel', delta_x, delta_y))

    async def click(self, x: float, y: float) -> None:
        self.page.calls.append(('mouse_click', x, y))


class FakeKeyboard:
    def __init__(self, page: 'FakePage'):
        self.page = page

    async def press(self, key: str) -> None:
        self.page.calls.append(('press', key))


class FakePage:
    """
    Stand-in for a live page.

    ``css``, ``roles`` and ``texts`` map selectors/names to how many elements a
    locator would match; anything missing matches nothing.
    """

    def __init__(
        self,
        snapshot: dict | None = None,
        candidates: list | None = None,
        extraction: dict | None = None,
        css: dict | None = None,
        roles: dict | None = None,
        texts: dict | None = None,
        fail_evaluate: bool = False,
    ):
        self.snapshot = snapshot or {'url': 'https://example.org/', 'title': 'Example', 'body_text': '', 'headings': [], 'candidates': []}
        self.candidates = candidates or []
        self.extraction = extraction or {'url': 'https://example.org/', 'title': 'Example', 'body_text': '', 'headings': [], 'links': []}
        self.css = css or {}
        self.roles = roles or {}
        self.texts = texts or {}
        self.fail_evaluate = fail_evaluate
        self.url = self.snapshot.get('url', 'about:blank')
        self.evaluations: list[tuple[str, Any]] = []
        self.screenshots: list[str] = []
        self.calls: list[tuple] = []
        self.mouse = FakeMouse(self)
        self.keyboard = FakeKeyboard(self)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == load_script('snapshot.js'):
            name = 'snapshot'
        elif script == load_script('candidates.js'):
            name = 'candidates'
        elif script == load_script('extract.js'):
            name = 'extract'
        else:
            raise AssertionError('unexpected script')
        self.evaluations.append((name, arg))
        if self.fail_evaluate:
            raise RuntimeError('Execution context was destroyed')
        return {'snapshot': self.snapshot, 'candidates': self.candidates, 'extract': self.extraction}[name]

    async def screenshot(self, *, path: str | None = None, full_page: bool = False) -> bytes:
        assert full_page is True
        self.screenshots.append(path)
        Path(path).write_bytes(b'\x89PNG')
        return b'\x89PNG'

    def locator(self, css: str) -> FakeLocator:
        return FakeLocator(self, 'css', css, self.css.get(css, 0))

    def get_by_role(self, role: str, name: str | None = None) -> FakeLocator:
        return FakeLocator(self, 'role', (role, name), self.roles.get((role, name), 0))

    def get_by_text(self, text: str, exact: bool = False) -> FakeLocator:
        return FakeLocator(self, 'text', text, self.texts.get(text, 0))

    async def goto(self, url: str, wait_until: str = 'load', timeout: float | None = None) -> None:
        self.calls.append(('goto', url, wait_until))
        self.url = url

    async def title(self) -> str:
        return self.snapshot.get('title', '')

    async def wait_for_timeout(self, ms: float) -> None:
        self.calls.append(('wait', ms))

    async def wait_for_load_state(self, state: str = 'load', timeout: float | None = None) -> None:
        self.calls.append(('load_state', state))

    async def wait_for_function(self, expression: str, timeout: float | None = None) -> None:
        return None


def candidate(tag='button', text='', id='', role_attr='', classes=None, aria_label='', ancestors=None, rect=None, index=0):
    entry = {
        'index': index,
        'tag': tag,
        'id': id,
        'role_attr': role_attr,
        'classes': classes or [],
        'inner_text': text,
        'aria_label': aria_label,
        'ancestors': ancestors if ancestors is not None else [{'tag': tag, 'id': id, 'classes': classes or []}],
    }
    if rect is not None:
        entry['rect'] = rect
    return entry


@pytest.fixture
def fake_page_factory():
    return FakePage


@pytest.fixture
def screenshot_dir(tmp_path: Path) -> Path:
    return tmp_path / 'shots'


@pytest.fixture
def make_candidate():
    return candidate
