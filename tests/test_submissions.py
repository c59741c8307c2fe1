"""
Submission Repository Tests

Tests validate:
- put() assigns ids and defaults
- compare_and_swap() only moves from the expected status
- Changes travel with a successful swap and are dropped on a failed one
"""

from strandly.models import QuizSubmission, SubmissionStatus


def make_submission(repo, email="jane@example.com", answers=None):
    return repo.put(QuizSubmission(email=email, answers=answers or {"texture": "curly"}))


class TestPut:
    def test_new_submission_is_pending(self, repo):
        submission = make_submission(repo)

        assert len(submission.id) == 32
        assert submission.status == SubmissionStatus.PENDING
        assert submission.payment_reference is None
        assert submission.analysis is None

    def test_answers_round_trip(self, repo):
        answers = {"hairType": "3b", "damage_indicators": ["bleaching"], "nested": {"a": 1}}
        submission = make_submission(repo, answers=answers)

        assert repo.get(submission.id).answers == answers

    def test_get_unknown(self, repo):
        assert repo.get("does-not-exist") is None


class TestCompareAndSwap:
    def test_swap_from_expected_status(self, repo):
        submission = make_submission(repo)

        swapped = repo.compare_and_swap(
            submission.id,
            SubmissionStatus.PENDING,
            SubmissionStatus.PAID,
            payment_reference="cs_test_123",
        )

        stored = repo.get(submission.id)
        assert swapped is True
        assert stored.status == SubmissionStatus.PAID
        assert stored.payment_reference == "cs_test_123"

    def test_second_swap_loses(self, repo):
        submission = make_submission(repo)

        first = repo.compare_and_swap(submission.id, SubmissionStatus.PENDING, SubmissionStatus.PAID)
        second = repo.compare_and_swap(
            submission.id,
            SubmissionStatus.PENDING,
            SubmissionStatus.PAID,
            payment_reference="late",
        )

        assert first is True
        assert second is False
        assert repo.get(submission.id).payment_reference is None

    def test_wrong_expected_status_changes_nothing(self, repo):
        submission = make_submission(repo)

        swapped = repo.compare_and_swap(
            submission.id,
            SubmissionStatus.ANALYZED,
            SubmissionStatus.EMAILED,
        )

        assert swapped is False
        assert repo.get(submission.id).status == SubmissionStatus.PENDING

    def test_unknown_id(self, repo):
        assert repo.compare_and_swap("missing", SubmissionStatus.PENDING, SubmissionStatus.PAID) is False

    def test_json_changes_persist(self, repo):
        submission = make_submission(repo)
        repo.compare_and_swap(submission.id, SubmissionStatus.PENDING, SubmissionStatus.PAID)

        repo.compare_and_swap(
            submission.id,
            SubmissionStatus.PAID,
            SubmissionStatus.ANALYZED,
            analysis={"damage": {"level": "healthy"}},
        )

        stored = repo.get(submission.id)
        assert stored.status == SubmissionStatus.ANALYZED
        assert stored.analysis == {"damage": {"level": "healthy"}}
