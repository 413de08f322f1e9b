import pytest

from app.engine.allocator import allocate_categories, validate_config
from app.engine.types import Category, PracticeConfig
from app.utils.exceptions import ConfigInvalid, ValidationError


DEFAULT = PracticeConfig(new_topics=40, strong_areas=20, mistakes=30, time_consuming=10)


def test_default_config_for_ten_questions():
    targets = allocate_categories(10, DEFAULT)
    assert targets.mistake == 3
    assert targets.time_consuming == 1
    assert targets.strong_area == 2
    assert targets.new_topic == 4


def test_targets_always_sum_to_total():
    configs = [
        DEFAULT,
        PracticeConfig(25, 25, 25, 25),
        PracticeConfig(0, 0, 100, 0),
        PracticeConfig(100, 0, 0, 0),
        PracticeConfig(33, 33, 33, 1),
        PracticeConfig(1, 33, 33, 33),
        PracticeConfig(0, 50, 0, 50),
    ]
    for config in configs:
        for total in (1, 2, 3, 7, 10, 13, 99, 100):
            targets = allocate_categories(total, config)
            assert targets.total == total
            assert all(value >= 0 for value in targets.as_dict().values())


def test_remainder_goes_to_new_topics():
    # 3 x round(7 * 0.25) = 6, new topics keeps the leftover 1
    targets = allocate_categories(7, PracticeConfig(25, 25, 25, 25))
    assert targets.mistake == 2
    assert targets.strong_area == 2
    assert targets.time_consuming == 2
    assert targets.new_topic == 1


def test_rounding_overshoot_never_goes_negative():
    targets = allocate_categories(1, PracticeConfig(0, 0, 50, 50))
    assert targets.total == 1
    assert targets.new_topic == 0
    assert targets.mistake == 1
    assert targets.time_consuming == 0


def test_rounds_half_up():
    # 5 * 30% = 1.5 -> 2
    targets = allocate_categories(5, DEFAULT)
    assert targets.mistake == 2


def test_config_must_sum_to_100():
    with pytest.raises(ConfigInvalid) as exc_info:
        allocate_categories(10, PracticeConfig(40, 20, 30, 9))
    assert exc_info.value.total == 99
    assert "99" in str(exc_info.value)


def test_config_invalid_is_a_validation_error():
    with pytest.raises(ValidationError):
        validate_config(PracticeConfig(50, 50, 50, 0))


def test_negative_percentage_rejected():
    with pytest.raises(ValidationError):
        validate_config(PracticeConfig(120, -20, 0, 0))


def test_total_must_be_positive():
    with pytest.raises(ValidationError):
        allocate_categories(0, DEFAULT)


def test_for_category_matches_fields():
    targets = allocate_categories(10, DEFAULT)
    assert targets.for_category(Category.MISTAKE) == targets.mistake
    assert targets.for_category(Category.NEW_TOPIC) == targets.new_topic
