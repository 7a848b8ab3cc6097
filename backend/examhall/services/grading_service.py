from typing import Any, Iterable, Optional

from ..models.exam_model import QuestionType


def grade_response(question: Any, selected_option: Optional[Any]) -> Optional[int]:
    """
    Objective score for a single response.

    - multiple_choice with a selected option: the question's full points when
      the option is flagged correct, otherwise 0.
    - multiple_choice without a selection, short_answer, essay: None, i.e.
      left for a human grader.
    """
    if question.question_type != QuestionType.MULTIPLE_CHOICE:
        return None
    if selected_option is None:
        return None
    return int(question.points) if selected_option.is_correct else 0


def grade_session_responses(responses: Iterable[Any]) -> int:
    """
    Autograde every multiple-choice response in place and return the sum of
    all non-null points (manual scores already present are kept).
    """
    total = 0
    for response in responses:
        score = grade_response(response.question, response.selected_option)
        if score is not None:
            response.points = score
        if response.points is not None:
            total += response.points
    return total


def sum_points(responses: Iterable[Any]) -> int:
    return sum(r.points for r in responses if r.points is not None)


def all_graded(responses: Iterable[Any]) -> bool:
    return all(r.points is not None for r in responses)
