from exam_sessions.components.assessments.scoring import (
    ScoreResult,
    correct_option_index,
    is_passing,
    score_answers,
)


def test_one_right_one_wrong():
    result = score_answers([{"correct": 0}, {"correct": 1}], [0, 2])
    assert result.correct_count == 1
    assert result.wrong_count == 1
    assert result.unanswered_count == 0
    assert result.percentage == 50
    assert result.missed_questions == [1]


def test_all_unanswered():
    result = score_answers([{"correct": 0}, {"correct": 1}], [None, None])
    assert result.correct_count == 0
    assert result.unanswered_count == 2
    assert result.percentage == 0
    assert result.missed_questions == [0, 1]


def test_short_answer_vector_counts_tail_unanswered():
    questions = [{"correct_option_index": i % 4} for i in range(5)]
    result = score_answers(questions, [0, 1])
    assert result.correct_count == 2
    assert result.unanswered_count == 3
    assert result.total_questions == 5
    assert result.percentage == 40


def test_no_questions_scores_zero():
    result = score_answers([], [])
    assert result.percentage == 0
    assert result.total_questions == 0


def test_percentage_is_rounded():
    questions = [{"correct": 0}] * 3
    assert score_answers(questions, [0, 1, 1]).percentage == 33
    assert score_answers(questions, [0, 0, 1]).percentage == 67


def test_counts_always_sum_to_total():
    questions = [{"correct": i % 3} for i in range(7)]
    answers = [0, 0, None, 0, 1, None, 2]
    result = score_answers(questions, answers)
    assert result.correct_count + result.wrong_count + result.unanswered_count == 7


def test_correct_option_index_accepts_objects():
    class Q:
        correct_option_index = 2

    assert correct_option_index(Q()) == 2
    assert correct_option_index({"correct_option_index": "1"}) == 1


def test_is_passing_threshold_inclusive():
    result = ScoreResult(correct_count=7, wrong_count=3, unanswered_count=0, percentage=70)
    assert is_passing(result, 70) is True
    assert is_passing(result, 71) is False


def test_to_dict_shape():
    data = score_answers([{"correct": 0}], [0]).to_dict()
    assert data == {
        "correct_count": 1,
        "wrong_count": 0,
        "unanswered_count": 0,
        "percentage": 100,
        "missed_questions": [],
    }


def test_halves_round_up():
    one_of_eight = score_answers([{"correct_option_index": 0}] * 8, [0] + [None] * 7)
    assert one_of_eight.percentage == 13

    questions = [{"correct": 0}] * 200
    assert score_answers(questions, [0] * 137 + [1] * 63).percentage == 69
    assert score_answers(questions, [0] * 141 + [1] * 59).percentage == 71


def test_pass_mark_uses_half_up_percentage():
    questions = [{"correct": 0}] * 200
    result = score_answers(questions, [0] * 139 + [None] * 61)
    assert result.percentage == 70
    assert is_passing(result, 70) is True
