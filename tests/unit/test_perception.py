from pathlib import Path

import pytest

from ooda_agent.dom.perception import (
    PerceptionEngine,
    build_elements,
    build_observation,
    build_structured_extraction,
    css_path_from_chain,
    infer_role,
    safe_session_id,
)
from ooda_agent.dom.views import MAX_ELEMENTS, MAX_LINKS, MAX_VISIBLE_TEXT_CHARS, ObserveOptions
from ooda_agent.exceptions import PerceptionFailure


def test_infer_role_prefers_explicit_role():
    assert infer_role('div', 'button') == 'button'
    assert infer_role('a') == 'link'
    assert infer_role('INPUT') == 'input'


def test_css_path_stops_at_first_id_and_keeps_two_classes():
    chain = [
        {'tag': 'button', 'id': '', 'classes': ['btn', 'primary', 'large']},
        {'tag': 'div', 'id': '', 'classes': []},
        {'tag': 'form', 'id': 'login', 'classes': ['x']},
        {'tag': 'body', 'id': 'ignored', 'classes': []},
    ]
    assert css_path_from_chain(chain) == 'form#login > div > button.btn.primary'


def test_elements_get_synthesized_ids_and_collapsed_text(make_candidate):
    elements = build_elements(
        [
            make_candidate(tag='a', text='  Read\n more  '),
            make_candidate(tag='button', id='go', text='Go'),
            make_candidate(tag='input', aria_label='Search box'),
        ]
    )
    assert [e.id for e in elements] == ['link-1', 'go', 'input-3']
    assert elements[0].text == 'Read more'
    assert elements[2].text == 'Search box'


def test_observation_applies_caps_and_summary(make_candidate):
    snapshot = {
        'url': 'https://example.org/',
        'title': 'Example',
        'body_text': 'word ' * 5000,
        'headings': [f'h{i}' for i in range(15)],
        'candidates': [make_candidate(text='x' * 500, classes=['c' * 300]) for _ in range(MAX_ELEMENTS + 40)],
    }
    observation = build_observation(snapshot)
    assert len(observation.visible_text) == MAX_VISIBLE_TEXT_CHARS
    assert len(observation.elements) == MAX_ELEMENTS
    assert all(len(e.text) <= 160 and len(e.css_path) <= 240 for e in observation.elements)
    assert observation.dom_summary == f'headings=10, interactive_elements={MAX_ELEMENTS}, text_chars={MAX_VISIBLE_TEXT_CHARS}'


def test_safe_session_id_strips_path_characters():
    assert safe_session_id('../../etc/passwd') == '..-..-etc-passwd'
    assert '/' not in safe_session_id('a/b\\c')
    assert safe_session_id('..') not in ('', '.', '..')
    assert safe_session_id('') != ''


def test_structured_extraction_keeps_http_links_only():
    links = [{'text': 'ok', 'url': 'https://example.org/a'}, {'text': 'js', 'url': 'javascript:void(0)'}, {'text': 'rel', 'url': '/relative'}]
    links += [{'text': f'l{i}', 'url': f'http://example.org/{i}'} for i in range(MAX_LINKS + 10)]
    extraction = build_structured_extraction(
        {'url': 'https://example.org/', 'title': 'T', 'body_text': ' a  b ', 'headings': [' One ', ''], 'links': links, 'byline': ' Jo Doe '},
        url_override='https://example.org/final',
    )
    assert extraction.url == 'https://example.org/final'
    assert extraction.main_text == 'a b'
    assert extraction.headings == ('One',)
    assert extraction.byline == 'Jo Doe'
    assert len(extraction.links) == MAX_LINKS
    assert extraction.links[0].url == 'https://example.org/a'
    assert all(link.url.startswith('http') for link in extraction.links)


@pytest.mark.asyncio
async def test_observe_uses_snapshot_script(fake_page_factory, make_candidate):
    page = fake_page_factory(
        snapshot={
            'url': 'https://example.org/',
            'title': 'Example',
            'body_text': 'Hello   world',
            'headings': ['Welcome'],
            'candidates': [make_candidate(tag='button', id='submit', text='Submit Form')],
        }
    )
    observation = await PerceptionEngine().observe(page)
    assert page.evaluations == [('snapshot', {'maxCandidates': MAX_ELEMENTS})]
    assert observation.visible_text == 'Hello world'
    assert observation.elements[0].css_path == 'button#submit'
    assert observation.screenshot_path is None


@pytest.mark.asyncio
async def test_observe_writes_screenshot_under_sanitized_name(fake_page_factory, screenshot_dir: Path):
    page = fake_page_factory()
    engine = PerceptionEngine(screenshot_dir=screenshot_dir)
    observation = await engine.observe(page, ObserveOptions(include_screenshot=True, session_id='../evil/id'))
    path = Path(observation.screenshot_path)
    assert path.parent == screenshot_dir
    assert path.name.startswith('..-evil-id-')
    assert path.suffix == '.png'
    assert path.exists()
    assert page.screenshots == [str(path)]


@pytest.mark.asyncio
async def test_evaluate_failure_becomes_perception_failure(fake_page_factory):
    page = fake_page_factory(fail_evaluate=True)
    with pytest.raises(PerceptionFailure) as exc_info:
        await PerceptionEngine().observe(page)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    with pytest.raises(PerceptionFailure):
        await PerceptionEngine().extract_structured(page)


@pytest.mark.asyncio
async def test_extract_structured_uses_extract_script(fake_page_factory):
    page = fake_page_factory(extraction={'url': 'https://example.org/post', 'title': 'Post', 'body_text': 'Body', 'headings': ['H'], 'links': []})
    extraction = await PerceptionEngine().extract_structured(page)
    assert page.evaluations[0][0] == 'extract'
    assert extraction.title == 'Post'
    assert extraction.main_text == 'Body'
