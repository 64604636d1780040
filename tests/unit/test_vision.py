import pytest

from ooda_agent.dom.views import BoundingBox, InteractiveElement, VisionResolution, WebActionTarget, WebObservation
from ooda_agent.dom.vision import VisionResolver
from ooda_agent.exceptions import PerceptionFailure


def _observation(*elements):
    return WebObservation(url='https://example.org/', elements=tuple(InteractiveElement(**e) for e in elements))


@pytest.mark.asyncio
async def test_bbox_target_is_used_directly(fake_page_factory):
    page = fake_page_factory()
    bbox = BoundingBox(x=10, y=20, w=30, h=40)
    resolution = await VisionResolver().resolve(page, WebActionTarget(bbox=bbox, text='ignored'))
    assert resolution.strategy == 'bbox'
    assert resolution.confidence == 0.95
    assert resolution.bbox == bbox
    assert page.evaluations == []


@pytest.mark.asyncio
async def test_blank_text_resolves_to_none_without_touching_page(fake_page_factory):
    page = fake_page_factory()
    resolution = await VisionResolver().resolve(page, {'text': '   ', 'role': 'button'})
    assert resolution == VisionResolution.unresolved()
    assert page.evaluations == []


@pytest.mark.asyncio
async def test_observation_match_with_role(fake_page_factory):
    page = fake_page_factory()
    observation = _observation({'id': 'submit', 'role': 'button', 'text': 'Submit Form', 'css_path': '#submit'})
    resolution = await VisionResolver().resolve(page, WebActionTarget(text='Submit', role='button'), observation)
    assert resolution.css == '#submit'
    assert resolution.confidence == 0.55
    assert resolution.strategy == 'role-text-match'
    assert page.evaluations == []


@pytest.mark.asyncio
async def test_observation_match_without_role_is_text_match(fake_page_factory):
    page = fake_page_factory()
    observation = _observation(
        {'id': 'a', 'role': 'link', 'text': 'Home', 'css_path': 'a.home'},
        {'id': 'b', 'role': 'button', 'text': 'Sign in now', 'css_path': 'button#b'},
    )
    resolution = await VisionResolver().resolve(page, {'text': 'SIGN IN'}, observation)
    assert resolution.css == 'button#b'
    assert resolution.strategy == 'text-match'


@pytest.mark.asyncio
async def test_absent_target_resolves_to_none(fake_page_factory, make_candidate):
    page = fake_page_factory(candidates=[make_candidate(text='Home'), make_candidate(tag='a', text='About', index=1)])
    observation = _observation({'id': 'x', 'role': 'button', 'text': 'Home', 'css_path': '#x'})
    resolution = await VisionResolver().resolve(page, {'text': 'zzz-absent'}, observation)
    assert resolution.strategy == 'none'
    assert resolution.confidence == 0
    assert resolution.css is None and resolution.bbox is None
    assert [name for name, _ in page.evaluations] == ['candidates']


@pytest.mark.asyncio
async def test_fresh_query_picks_first_best_candidate(fake_page_factory, make_candidate):
    rect = {'x': 5, 'y': 6, 'w': 100, 'h': 20}
    page = fake_page_factory(
        candidates=[
            make_candidate(tag='a', text='Checkout later', classes=['nav', 'item', 'extra'], rect=rect, index=0),
            make_candidate(tag='button', text='Checkout', rect=rect, index=1),
        ]
    )
    resolution = await VisionResolver().resolve(page, {'text': 'checkout'})
    assert resolution.css == 'a.nav.item'
    assert resolution.bbox == BoundingBox(x=5, y=6, w=100, h=20)
    assert resolution.confidence == 0.8
    assert resolution.strategy == 'text-match'


@pytest.mark.asyncio
async def test_role_penalty_prefers_matching_role(fake_page_factory, make_candidate):
    page = fake_page_factory(
        candidates=[
            make_candidate(tag='a', text='Continue', index=0),
            make_candidate(tag='button', text='Continue', index=1),
        ]
    )
    resolution = await VisionResolver().resolve(page, {'text': 'continue', 'role': 'button'})
    assert resolution.css == 'button:nth-of-type(2)'
    assert resolution.strategy == 'role-text-match'
    assert resolution.confidence == 0.8


@pytest.mark.asyncio
async def test_role_mismatch_alone_is_floored_at_half(fake_page_factory, make_candidate):
    page = fake_page_factory(candidates=[make_candidate(tag='a', id='next', text='Next page')])
    resolution = await VisionResolver().resolve(page, {'text': 'next', 'role': 'button'})
    assert resolution.css == '#next'
    assert 0.5 <= resolution.confidence <= 0.8


@pytest.mark.asyncio
async def test_fresh_query_failure_raises(fake_page_factory):
    page = fake_page_factory(fail_evaluate=True)
    with pytest.raises(PerceptionFailure):
        await VisionResolver().resolve(page, {'text': 'anything'})


@pytest.mark.asyncio
async def test_malformed_candidate_raises_perception_failure(fake_page_factory, make_candidate):
    broken = make_candidate(text='Next')
    broken['classes'] = 'not-a-list'
    page = fake_page_factory(candidates=[make_candidate(text='Home'), broken])
    with pytest.raises(PerceptionFailure) as exc_info:
        await VisionResolver().resolve(page, {'text': 'Next'})
    assert 'Candidate 1' in str(exc_info.value)


def test_none_strategy_cannot_carry_a_locator():
    with pytest.raises(ValueError):
        VisionResolution(css='#x', confidence=0.0, strategy='none')
