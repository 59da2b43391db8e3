import unittest

from backend.insights_app.pipeline import (
    NoFeedbackAvailable,
    generate_and_store_insight,
    import_feedback_csv,
    load_feedback_csv,
    render_insight_markdown,
)
from backend.insights_app.schemas import InsightResult
from backend.insights_app.store import FeedbackStore, RecordNotFound

RESULT = InsightResult(
    title="Search frustrations dominate",
    summary="Users cannot find records quickly.",
    key_themes=["Search", "Exports"],
    recommendations=["Add saved filters", "Schedule exports"],
)


class RecordingGenerator:
    def __init__(self, result=RESULT):
        self.result = result
        self.calls = []

    def generate(self, feedback_items):
        self.calls.append(list(feedback_items))
        return self.result


class StaleCountStore(FeedbackStore):
    """Reports feedback that has since been deleted, like a count taken before a concurrent delete."""

    def count_feedback(self, user_id):
        return 1


class StoreOwnershipTests(unittest.TestCase):
    def setUp(self):
        self.store = FeedbackStore()

    def test_rows_of_other_users_are_invisible(self):
        source = self.store.create_source("alice", "Mobile app")
        item = self.store.create_feedback("alice", "Crashes on login", source_id=source.id)

        self.assertEqual(self.store.list_sources("bob"), [])
        self.assertEqual(self.store.list_feedback("bob"), [])
        with self.assertRaises(RecordNotFound):
            self.store.get_feedback("bob", item.id)
        with self.assertRaises(RecordNotFound):
            self.store.delete_source("bob", source.id)
        with self.assertRaises(RecordNotFound):
            self.store.create_feedback("bob", "Sneaky", source_id=source.id)

    def test_deleting_a_source_detaches_its_feedback(self):
        source = self.store.create_source("alice", "Website")
        item = self.store.create_feedback("alice", "Pricing page is confusing", source_id=source.id)

        self.store.delete_source("alice", source.id)

        kept = self.store.get_feedback("alice", item.id)
        self.assertIsNone(kept.source_id)
        self.assertIsNone(kept.source_name)

    def test_listings_are_newest_first_with_counts_and_names(self):
        source = self.store.create_source("alice", "Website")
        self.store.create_feedback("alice", "first", source_id=source.id)
        self.store.create_feedback("alice", "second")

        feedback = self.store.list_feedback("alice")
        self.assertEqual([item.content for item in feedback], ["second", "first"])
        self.assertEqual(feedback[1].source_name, "Website")
        self.assertEqual(self.store.list_sources("alice")[0].feedback_count, 1)

    def test_feedback_search_and_source_filter(self):
        web = self.store.create_source("alice", "Website")
        self.store.create_feedback("alice", "Search is SLOW", source_id=web.id)
        self.store.create_feedback("alice", "Exports are manual")

        self.assertEqual(len(self.store.list_feedback("alice", search="slow")), 1)
        self.assertEqual(len(self.store.list_feedback("alice", source_id=web.id)), 1)

    def test_blank_content_and_names_are_rejected(self):
        with self.assertRaises(ValueError):
            self.store.create_feedback("alice", "   ")
        with self.assertRaises(ValueError):
            self.store.create_source("alice", " ")

    def test_profile_updates_refresh_timestamp(self):
        profile = self.store.create_profile("alice", email="alice@example.com", full_name="Alice")

        updated = self.store.update_profile("alice", company_name="Acme", onboarded=True)

        self.assertEqual(updated.company_name, "Acme")
        self.assertTrue(updated.onboarded)
        self.assertEqual(updated.full_name, "Alice")
        self.assertGreaterEqual(updated.updated_at, profile.updated_at)

    def test_profile_null_clears_optional_fields_but_not_onboarded(self):
        self.store.create_profile("alice", email="alice@example.com", full_name="Alice")
        self.store.update_profile("alice", company_name="Acme", onboarded=True)

        updated = self.store.update_profile("alice", company_name=None, onboarded=None)

        self.assertIsNone(updated.company_name)
        self.assertTrue(updated.onboarded)

    def test_source_description_can_be_cleared(self):
        source = self.store.create_source("alice", "Website", description="old")

        updated = self.store.update_source("alice", source.id, name="Web", description=None, source_type=None)

        self.assertEqual(updated.name, "Web")
        self.assertIsNone(updated.description)
        self.assertEqual(updated.source_type, "product")
        self.assertIsNone(self.store.get_source("alice", source.id).description)

    def test_source_update_without_description_keeps_it(self):
        source = self.store.create_source("alice", "Website", description="kept")

        updated = self.store.update_source("alice", source.id, name="Web")

        self.assertEqual(updated.description, "kept")

    def test_dashboard_counts_and_recent_feedback(self):
        self.store.create_source("alice", "Website")
        for n in range(7):
            self.store.create_feedback("alice", f"note {n}")
        self.store.create_insight("alice", RESULT, feedback_count=7)

        stats = self.store.dashboard("alice")

        self.assertEqual(stats.total_feedback, 7)
        self.assertEqual(stats.total_sources, 1)
        self.assertEqual(stats.total_insights, 1)
        self.assertEqual([item.content for item in stats.recent_feedback], [f"note {n}" for n in range(6, 1, -1)])


class GenerateAndStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = FeedbackStore()

    def test_empty_feedback_never_reaches_the_generator(self):
        generator = RecordingGenerator()

        with self.assertRaises(NoFeedbackAvailable):
            generate_and_store_insight(self.store, "alice", generator)

        self.assertEqual(generator.calls, [])
        self.assertEqual(self.store.list_insights("alice"), [])

    def test_feedback_deleted_after_counting_still_reports_no_feedback(self):
        store = StaleCountStore()
        item = store.create_feedback("alice", "Gone before analysis")
        store.delete_feedback("alice", item.id)
        generator = RecordingGenerator()

        with self.assertRaises(NoFeedbackAvailable):
            generate_and_store_insight(store, "alice", generator)

        self.assertEqual(generator.calls, [])

    def test_insight_is_persisted_with_feedback_count(self):
        self.store.create_feedback("alice", "Search is slow", category="performance", sentiment="negative")
        self.store.create_feedback("alice", "Love it")
        self.store.create_feedback("bob", "Not mine")
        generator = RecordingGenerator()

        insight = generate_and_store_insight(self.store, "alice", generator)

        self.assertEqual(len(generator.calls), 1)
        self.assertEqual(len(generator.calls[0]), 2)
        self.assertEqual(insight.feedback_count, 2)
        self.assertEqual(insight.title, RESULT.title)
        self.assertEqual(self.store.list_insights("alice")[0].id, insight.id)

    def test_analysis_batch_is_capped_at_one_hundred(self):
        for n in range(120):
            self.store.create_feedback("alice", f"note {n}")
        generator = RecordingGenerator()

        insight = generate_and_store_insight(self.store, "alice", generator)

        self.assertEqual(len(generator.calls[0]), 100)
        self.assertEqual(insight.feedback_count, 100)


class CsvImportTests(unittest.TestCase):
    def test_requires_content_column(self):
        with self.assertRaises(ValueError):
            load_feedback_csv(b"text,category\nhello,ui\n")

    def test_drops_blank_rows_and_fills_optional_columns(self):
        df = load_feedback_csv(b"Content,Category\nSearch is slow,performance\n   ,ui\nExports,\n")

        self.assertEqual(list(df["content"]), ["Search is slow", "Exports"])
        self.assertIn("sentiment", df.columns)

    def test_import_creates_feedback_in_source(self):
        store = FeedbackStore()
        source = store.create_source("alice", "Survey")
        csv_bytes = b"content,category,sentiment\nSearch is slow,performance,negative\nGreat support,,positive\n"

        created = import_feedback_csv(store, "alice", csv_bytes, source_id=source.id)

        self.assertEqual(len(created), 2)
        self.assertEqual(created[0].category, "performance")
        self.assertIsNone(created[1].category)
        self.assertEqual(created[1].sentiment, "positive")
        self.assertEqual(store.get_source("alice", source.id).feedback_count, 2)


class MarkdownReportTests(unittest.TestCase):
    def test_report_lists_themes_and_recommendations(self):
        store = FeedbackStore()
        insight = store.create_insight("alice", RESULT, feedback_count=12)

        report = render_insight_markdown(insight)

        self.assertTrue(report.startswith("# Search frustrations dominate"))
        self.assertIn("Based on 12 feedback items", report)
        self.assertIn("- Search", report)
        self.assertIn("2. Schedule exports", report)


if __name__ == "__main__":
    unittest.main()
