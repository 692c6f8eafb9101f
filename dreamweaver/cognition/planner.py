"""Rule-based session agenda planning.

The agenda is an ordered list of :class:`ActiveGoal` entries, one per
phase. The conductor walks it by elapsed session time, so the estimated
durations double as the phase schedule.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from dreamweaver.schemas import ActiveGoal, DurationClass, SessionPhase


_AgendaRow = Tuple[SessionPhase, str, float]

_ONBOARDING: _AgendaRow = (SessionPhase.ONBOARDING, "Establish rapport and get preferences", 1)

AGENDAS: dict[DurationClass, Sequence[_AgendaRow]] = {
    DurationClass.SHORT: (
        _ONBOARDING,
        (SessionPhase.STORYTELLING, "Tell a quick, engaging story", 3),
        (SessionPhase.WIND_DOWN, "Quick soothing close", 1),
    ),
    DurationClass.MEDIUM: (
        _ONBOARDING,
        (SessionPhase.STORYTELLING, "Tell a balanced story", 5),
        (SessionPhase.WIND_DOWN, "Soothing close", 2),
    ),
    DurationClass.LONG: (
        _ONBOARDING,
        (SessionPhase.STORYTELLING, "Tell an immersive multi-chapter story", 8),
        (SessionPhase.REFLECTION, "Discuss the moral of the story", 2),
        (SessionPhase.WIND_DOWN, "Deep relaxation exercise", 3),
    ),
}


class SessionPlanner:
    """Maps a duration class to a fixed agenda. Pure; no state."""

    def generate_agenda(self, duration: DurationClass | str = DurationClass.MEDIUM) -> List[ActiveGoal]:
        try:
            duration_class = DurationClass(duration)
        except ValueError:
            duration_class = DurationClass.MEDIUM

        return [
            ActiveGoal(
                id=str(index),
                phase=phase,
                goal=goal,
                estimated_duration_minutes=minutes,
            )
            for index, (phase, goal, minutes) in enumerate(AGENDAS[duration_class], start=1)
        ]


def goal_for_elapsed(agenda: Sequence[ActiveGoal], elapsed_minutes: float) -> ActiveGoal | None:
    """Return the agenda entry scheduled at ``elapsed_minutes`` into the session.

    Past the end of the agenda the last entry stays current.
    """
    if not agenda:
        return None
    boundary = 0.0
    for goal in agenda:
        boundary += goal.estimated_duration_minutes
        if elapsed_minutes < boundary:
            return goal
    return agenda[-1]
