from coveytown.backend.areas import BoundingBox, ConversationArea, find_area_by_label, find_area_containing


def _area(label: str, x: float, y: float, size: float = 10) -> ConversationArea:
    return ConversationArea(label=label, topic="t", bounding_box=BoundingBox(x=x, y=y, width=size, height=size))


def test_bounding_box_is_centred_and_half_open() -> None:
    box = BoundingBox(x=10, y=10, width=4, height=6)

    assert box.contains(10, 10)
    assert box.contains(8, 7)
    assert not box.contains(12, 10)
    assert not box.contains(10, 13)
    assert not box.contains(7.9, 10)


def test_shared_edge_belongs_to_exactly_one_box() -> None:
    left = _area("left", x=5, y=5)
    right = _area("right", x=15, y=5)

    assert find_area_containing([left, right], 10, 5) is right
    assert find_area_containing([right, left], 10, 5) is right


def test_first_containing_area_wins_on_overlap() -> None:
    big = _area("big", x=0, y=0, size=100)
    small = _area("small", x=0, y=0, size=2)

    assert find_area_containing([big, small], 0, 0) is big
    assert find_area_containing([small, big], 0, 0) is small


def test_find_area_by_label_handles_missing_and_none() -> None:
    lounge = _area("lounge", x=0, y=0)

    assert find_area_by_label([lounge], "lounge") is lounge
    assert find_area_by_label([lounge], "kitchen") is None
    assert find_area_by_label([lounge], None) is None


def test_occupants_are_added_once_and_removed() -> None:
    area = _area("lounge", x=0, y=0)

    assert area.add_occupant("p1") is True
    assert area.add_occupant("p1") is False
    assert area.occupants_by_id == ["p1"]
    assert area.remove_occupant("p2") is False
    assert area.remove_occupant("p1") is True
    assert area.is_empty
