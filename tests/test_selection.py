from pathlib import Path

from mobile.parrot.audio.types import ReferenceSample
from mobile.parrot.store.selection import SelectionSlot


def sample(name: str, text: str = "hello") -> ReferenceSample:
    return ReferenceSample(audio_path=Path(f"/refs/{name}.wav"), transcript=text)


def test_at_most_one_selection():
    slot = SelectionSlot()
    assert slot.value is None

    slot.set(sample("a"))
    slot.set(sample("b"))
    assert slot.value == sample("b")

    slot.clear()
    assert slot.value is None


def test_listeners_see_every_change_once():
    slot = SelectionSlot()
    seen = []
    slot.subscribe(seen.append)

    slot.set(sample("a"))
    slot.set(sample("a"))
    slot.clear()
    slot.clear()
    assert seen == [sample("a"), None]


def test_unsubscribe_stops_notifications():
    slot = SelectionSlot(initial=sample("a"))
    seen = []
    unsubscribe = slot.subscribe(seen.append)
    unsubscribe()
    unsubscribe()

    slot.set(sample("b"))
    assert seen == []
    assert slot.value == sample("b")


def test_two_holders_share_one_slot():
    slot = SelectionSlot()
    generate_view, reference_view = [], []
    slot.subscribe(generate_view.append)
    slot.subscribe(reference_view.append)

    slot.set(sample("a"))
    assert generate_view == reference_view == [sample("a")]
