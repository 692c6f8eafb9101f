"""Tests for the rule-based agenda planner and intent classifier."""

import pytest

from dreamweaver.cognition.intent import IntentClassifier
from dreamweaver.cognition.planner import SessionPlanner, goal_for_elapsed
from dreamweaver.schemas import DurationClass, SessionPhase, UserIntent


def test_short_agenda():
    agenda = SessionPlanner().generate_agenda(DurationClass.SHORT)

    assert [goal.phase for goal in agenda] == [
        SessionPhase.ONBOARDING,
        SessionPhase.STORYTELLING,
        SessionPhase.WIND_DOWN,
    ]
    assert [goal.estimated_duration_minutes for goal in agenda] == [1, 3, 1]
    assert agenda[0].id == "1"
    assert agenda[0].goal == "Establish rapport and get preferences"


def test_long_agenda_includes_reflection():
    agenda = SessionPlanner().generate_agenda("long")

    assert [goal.phase for goal in agenda] == [
        SessionPhase.ONBOARDING,
        SessionPhase.STORYTELLING,
        SessionPhase.REFLECTION,
        SessionPhase.WIND_DOWN,
    ]
    assert agenda[2].goal == "Discuss the moral of the story"


def test_unknown_duration_defaults_to_medium():
    planner = SessionPlanner()

    agenda = planner.generate_agenda("epic")

    assert [goal.goal for goal in agenda] == [
        goal.goal for goal in planner.generate_agenda(DurationClass.MEDIUM)
    ]
    assert agenda[1].goal == "Tell a balanced story"


def test_goal_for_elapsed_walks_the_agenda():
    agenda = SessionPlanner().generate_agenda(DurationClass.MEDIUM)  # 1 + 5 + 2 minutes

    assert goal_for_elapsed(agenda, 0).phase is SessionPhase.ONBOARDING
    assert goal_for_elapsed(agenda, 1.5).phase is SessionPhase.STORYTELLING
    assert goal_for_elapsed(agenda, 6.5).phase is SessionPhase.WIND_DOWN
    assert goal_for_elapsed(agenda, 60).phase is SessionPhase.WIND_DOWN
    assert goal_for_elapsed([], 3) is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("I want a story about dragons", UserIntent.DIRECT),
        ("Can we go to space?", UserIntent.DIRECT),
        ("Why is the sky blue?", UserIntent.ASK_QUESTION),
        ("? what", UserIntent.ASK_QUESTION),
        ("Yes please", UserIntent.AFFIRM),
        ("Nah", UserIntent.DENY),
        ("that's scary", UserIntent.UNKNOWN),
        ("Wait a second", UserIntent.INTERRUPT),
        ("Hold on", UserIntent.INTERRUPT),
        ("", UserIntent.UNKNOWN),
        ("   ", UserIntent.UNKNOWN),
    ],
)
def test_intent_classification(text, expected):
    assert IntentClassifier().classify(text) is expected


def test_first_matching_pattern_wins():
    # "stop" (DIRECT) is checked before anything else.
    assert IntentClassifier().classify("stop, I don't like it") is UserIntent.DIRECT
