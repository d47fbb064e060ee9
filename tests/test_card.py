"""Tests for card values, rating/state coercion, and scheduler parameters."""

from datetime import UTC, datetime, timedelta

import pytest

from subflash.config import Settings, utcnow
from subflash.srs.card import (
    Card,
    Rating,
    ReviewLog,
    State,
    coerce_rating,
    coerce_state,
    create_empty_card,
)
from subflash.srs.errors import (
    ConfigurationError,
    InvalidCardStateError,
    InvalidRatingError,
    SchedulerError,
)
from subflash.srs.parameters import (
    DEFAULT_WEIGHTS,
    HardStepPolicy,
    SchedulerParameters,
    parse_step,
)
from subflash.srs.scheduler import Scheduler

NOW = datetime(2024, 3, 1, 9, 0, 0)

# --- Cards ---


class TestCard:
    def test_empty_card(self) -> None:
        card = create_empty_card(NOW)
        assert card.state == State.NEW
        assert card.due == NOW
        assert card.stability == 0.0
        assert card.difficulty == 0.0
        assert card.reps == 0
        assert card.lapses == 0
        assert card.learning_steps == 0
        assert card.last_review is None

    def test_empty_card_defaults_to_now(self) -> None:
        card = create_empty_card()
        assert abs(card.due - datetime.now(UTC).replace(tzinfo=None)) < timedelta(seconds=5)

    def test_to_dict_uses_literals(self) -> None:
        data = create_empty_card(NOW).to_dict()
        assert data["state"] == "New"
        assert data["due"] == "2024-03-01T09:00:00"
        assert data["last_review"] is None

    def test_dict_round_trip(self) -> None:
        card = Card(
            due=NOW + timedelta(days=3),
            stability=4.2,
            difficulty=6.1,
            elapsed_days=1.5,
            scheduled_days=3.0,
            reps=4,
            lapses=1,
            state=State.REVIEW,
            last_review=NOW,
            learning_steps=0,
        )
        assert Card.from_dict(card.to_dict()) == card

    def test_from_store_record(self) -> None:
        """Records written by other stores use a space and a trailing Z."""
        card = Card.from_dict(
            {
                "due": "2024-03-01 09:00:00.000Z",
                "stability": 3.1,
                "difficulty": None,
                "state": "Learning",
                "last_review": "",
            }
        )
        assert card.due == datetime(2024, 3, 1, 9, 0, 0)
        assert card.due.tzinfo is None
        assert card.state == State.LEARNING
        assert card.difficulty == 0.0
        assert card.last_review is None

    def test_offset_timestamps_become_naive_utc(self) -> None:
        card = Card.from_dict(
            {
                "due": "2024-03-01T11:00:00+02:00",
                "last_review": datetime(2024, 2, 20, 9, 0, tzinfo=UTC),
                "state": "Review",
            }
        )
        assert card.due == datetime(2024, 3, 1, 9, 0, 0)
        assert card.last_review == datetime(2024, 2, 20, 9, 0, 0)

    def test_store_record_can_be_reviewed_now(self) -> None:
        card = Card.from_dict(
            {
                "due": "2024-01-01 10:00:00.000Z",
                "state": "Review",
                "stability": 5,
                "difficulty": 5,
                "last_review": "2023-12-25 10:00:00.000Z",
            }
        )
        now = utcnow()
        result = Scheduler().next(card, now, "Good")
        assert result.card.state == State.REVIEW
        assert result.card.last_review == now
        assert result.card.due > now

    def test_review_log_round_trip(self) -> None:
        log = ReviewLog(
            rating=Rating.HARD,
            state=State.LEARNING,
            due=NOW,
            stability=3.1,
            difficulty=5.5,
            elapsed_days=0.01,
            last_elapsed_days=0.0,
            scheduled_days=0.007,
            learning_steps=1,
            review_time=NOW + timedelta(minutes=10),
        )
        data = log.to_dict()
        assert data["rating"] == "Hard"
        assert ReviewLog.from_dict(data) == log


# --- Coercion ---


class TestCoercion:
    def test_rating_from_literal_and_grade(self) -> None:
        assert coerce_rating("Again") is Rating.AGAIN
        assert coerce_rating(4) is Rating.EASY
        assert coerce_rating(0) is Rating.MANUAL
        assert coerce_rating(Rating.GOOD) is Rating.GOOD

    def test_rating_grades(self) -> None:
        assert [r.grade for r in Rating] == [0, 1, 2, 3, 4]

    @pytest.mark.parametrize("value", ["good", "", 5, True, 3.0])
    def test_invalid_rating(self, value: object) -> None:
        with pytest.raises(InvalidRatingError):
            coerce_rating(value)  # type: ignore[arg-type]

    def test_state_from_literal(self) -> None:
        assert coerce_state("Relearning") is State.RELEARNING

    def test_invalid_state(self) -> None:
        with pytest.raises(InvalidCardStateError):
            coerce_state("Suspended")

    def test_errors_share_a_base(self) -> None:
        for error in (ConfigurationError, InvalidRatingError, InvalidCardStateError):
            assert issubclass(error, SchedulerError)
            assert issubclass(error, ValueError)


# --- Parameters ---


class TestParameters:
    def test_defaults(self) -> None:
        params = SchedulerParameters()
        assert params.weights == DEFAULT_WEIGHTS
        assert len(params.weights) == 19
        assert params.request_retention == 0.9
        assert params.maximum_interval == 36500
        assert params.learning_steps == (timedelta(minutes=1), timedelta(minutes=10))
        assert params.relearning_steps == (timedelta(minutes=10),)
        assert params.hard_step_policy is HardStepPolicy.BLENDED

    def test_plain_values_are_normalised(self) -> None:
        params = SchedulerParameters(
            weights=list(DEFAULT_WEIGHTS),
            learning_steps=["30s", "5m", "1h"],
            relearning_steps=[15],
            hard_step_policy="repeat",
        )
        assert isinstance(params.weights, tuple)
        assert params.learning_steps == (
            timedelta(seconds=30),
            timedelta(minutes=5),
            timedelta(hours=1),
        )
        assert params.relearning_steps == (timedelta(minutes=15),)
        assert params.hard_step_policy is HardStepPolicy.REPEAT

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"weights": DEFAULT_WEIGHTS[:17]},
            {"weights": (*DEFAULT_WEIGHTS[:18], float("nan"))},
            {"weights": (*DEFAULT_WEIGHTS[:18], "heavy")},
            {"request_retention": 0.0},
            {"request_retention": 1.0},
            {"maximum_interval": 0},
            {"learning_steps": ["0m"]},
            {"relearning_steps": ["soon"]},
            {"hard_step_policy": "skip"},
            {"learning_steps": [], "graduate_new_on_easy": False},
        ],
    )
    def test_invalid_parameters(self, kwargs: dict) -> None:
        with pytest.raises(ConfigurationError):
            SchedulerParameters(**kwargs)

    def test_empty_steps_allowed_without_short_term(self) -> None:
        params = SchedulerParameters(
            enable_short_term=False, learning_steps=[], graduate_new_on_easy=False
        )
        assert params.learning_steps == ()

    def test_parse_step(self) -> None:
        assert parse_step("2d") == timedelta(days=2)
        assert parse_step(" 1.5h ") == timedelta(minutes=90)
        assert parse_step(10) == timedelta(minutes=10)
        assert parse_step(timedelta(seconds=5)) == timedelta(seconds=5)

    def test_from_settings(self) -> None:
        settings = Settings(
            request_retention=0.85,
            maximum_interval=365,
            enable_fuzz=False,
            learning_steps=["2m"],
            relearning_steps=["5m", "1h"],
            hard_step_policy="repeat",
        )
        params = SchedulerParameters.from_settings(settings)
        assert params.request_retention == 0.85
        assert params.maximum_interval == 365
        assert params.enable_fuzz is False
        assert params.learning_steps == (timedelta(minutes=2),)
        assert params.relearning_steps == (timedelta(minutes=5), timedelta(hours=1))
        assert params.hard_step_policy is HardStepPolicy.REPEAT

    def test_settings_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SUBFLASH_REQUEST_RETENTION", "0.8")
        monkeypatch.setenv("SUBFLASH_ENABLE_FUZZ", "false")
        settings = Settings()
        assert settings.request_retention == 0.8
        assert settings.enable_fuzz is False
