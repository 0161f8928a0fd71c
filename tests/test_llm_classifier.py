import json
import unittest
from unittest.mock import MagicMock, patch

from agents.llm_classifier import classify_batch, llm_classifier_agent


RUN_AT = "2026-01-01T12:00:00+00:00"


def make_records(n):
    return [
        {
            "title": f"Job {i}",
            "description": "Registered Nurse role. " * 5,
            "source_url": f"https://x/job/{i}",
            "location": "Rochester, NY",
            "specialty": "General Nursing",
            "job_type": "full-time",
            "shift_type": None,
            "experience_level": "experienced",
            "classified_at": None,
        }
        for i in range(n)
    ]


def jobs_in(messages):
    content = messages[1].content
    return json.loads(content.split("Jobs:\n")[1].split("\n\nReturn ONLY")[0])


class TestLLMClassifierBatching(unittest.TestCase):
    def test_batching_logic(self):
        mock_llm = MagicMock()

        # Reject the first job of every batch, classify the rest as ICU nights
        def side_effect(messages):
            answers = []
            for job in jobs_in(messages):
                answers.append({
                    "index": job["index"],
                    "is_staff_rn": job["index"] != 0,
                    "specialty": "critical care",
                    "job_type": "Per Diem",
                    "shift_type": "Night Shift",
                    "experience_level": "new-grad",
                })
            return MagicMock(content=json.dumps(answers))

        mock_llm.invoke.side_effect = side_effect

        state = {"normalized_jobs": make_records(12), "run_at": RUN_AT}
        result = llm_classifier_agent(state, {"configurable": {"llm": mock_llm, "llm_classify": True}})

        # 3 batches: 5 + 5 + 2
        self.assertEqual(mock_llm.invoke.call_count, 3)
        first_batch = jobs_in(mock_llm.invoke.call_args_list[0][0][0])
        self.assertEqual([j["title"] for j in first_batch], [f"Job {i}" for i in range(5)])

        self.assertEqual(len(result["normalized_jobs"]), 9)
        self.assertEqual(
            sorted(s["source_url"] for s in result["skipped"]),
            ["https://x/job/0", "https://x/job/10", "https://x/job/5"],
        )
        self.assertTrue(all(s["stage"] == "llm_classifier" for s in result["skipped"]))

        record = result["normalized_jobs"][0]
        self.assertEqual(record["specialty"], "ICU")
        self.assertEqual(record["job_type"], "per-diem")
        self.assertEqual(record["shift_type"], "nights")
        self.assertEqual(record["experience_level"], "new-grad")
        self.assertEqual(record["classified_at"].isoformat(), RUN_AT)

    def test_failed_batch_keeps_heuristic_fields(self):
        mock_llm = MagicMock()
        mock_llm.invoke.side_effect = [
            MagicMock(content="I cannot help with that."),
            MagicMock(content=json.dumps([{"index": 0, "is_staff_rn": True, "specialty": "Oncology"}])),
        ]
        records = make_records(6)

        result = llm_classifier_agent(
            {"normalized_jobs": records, "run_at": RUN_AT},
            {"configurable": {"llm": mock_llm, "llm_classify": True}},
        )

        self.assertEqual(result["normalized_jobs"][:5], records[:5])
        self.assertEqual(result["normalized_jobs"][5]["specialty"], "Oncology")
        self.assertEqual(len(result["errors"]), 1)
        self.assertEqual(result["skipped"], [])

    def test_unknown_labels_keep_heuristic_values(self):
        mock_llm = MagicMock()
        mock_llm.invoke.return_value = MagicMock(
            content="```json\n" + json.dumps([{
                "index": 0, "is_staff_rn": True, "specialty": "Underwater Medicine",
                "job_type": "gig", "shift_type": None, "experience_level": "guru",
            }]) + "\n```"
        )
        record = make_records(1)[0]

        kept, skipped = classify_batch(mock_llm, [record], None)

        self.assertEqual(skipped, [])
        self.assertEqual(kept[0]["specialty"], "General Nursing")
        self.assertEqual(kept[0]["job_type"], "full-time")
        self.assertEqual(kept[0]["experience_level"], "experienced")

    def test_string_indexes_are_matched(self):
        mock_llm = MagicMock()
        mock_llm.invoke.return_value = MagicMock(content=json.dumps([
            {"index": "0", "is_staff_rn": False},
            {"index": "1", "is_staff_rn": True, "specialty": "Oncology"},
            {"index": "n/a", "is_staff_rn": False},
        ]))

        kept, skipped = classify_batch(mock_llm, make_records(2), None)

        self.assertEqual([s["source_url"] for s in skipped], ["https://x/job/0"])
        self.assertEqual(len(kept), 1)
        self.assertEqual(kept[0]["specialty"], "Oncology")

    @patch("agents.llm_classifier.build_llm")
    def test_disabled_pass_is_a_no_op(self, mock_build_llm):
        result = llm_classifier_agent(
            {"normalized_jobs": make_records(3), "run_at": RUN_AT},
            {"configurable": {"llm_classify": False}},
        )

        self.assertEqual(result, {})
        mock_build_llm.assert_not_called()


if __name__ == "__main__":
    unittest.main()
