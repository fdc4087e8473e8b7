import copy
import json
import os
import tempfile
import unittest
from radio_core.config import settings
from radio_core.migrations import CURRENT_VERSION, MIGRATIONS, migrate
from radio_core.models import SourceKind
from radio_core.state import CollectionStore

V1_DOCUMENT = {
    "items": [
        {
            "sourceId": "jfKfPfyJRdk",
            "title": "Lofi HipHop Radio",
            "addedAt": 1_690_000_000_000,
            "bookmarks": [{"timestamp": 30, "createdAt": 1_690_000_100_000}],
            "notes": "Recorded in a bedroom studio.",
        },
        {
            "sourceId": "w6H_OPzo9Gk",
            "title": "Greta Cozy Autumn Mix",
            "addedAt": 1_690_000_500_000,
            "bookmarks": [],
        },
    ],
    "settings": {"volume": 0.4},
    "version": 1,
}

class TestMigrationSteps(unittest.TestCase):
    def test_versions_are_consecutive(self):
        targets = [target for target, _, _ in MIGRATIONS]
        self.assertEqual(targets, list(range(2, CURRENT_VERSION + 1)))

    def test_v1_to_current(self):
        data = migrate(copy.deepcopy(V1_DOCUMENT))
        self.assertEqual(data["version"], CURRENT_VERSION)
        self.assertEqual(data["notesCache"], {"jfKfPfyJRdk": "Recorded in a bedroom studio."})
        for item in data["items"]:
            self.assertEqual(item["sessions"], [])
            self.assertEqual(item["skipCount"], 0)
            self.assertEqual(item["completionCount"], 0)
            self.assertEqual(item["sourceKind"], "youtube")

    def test_existing_fields_are_kept(self):
        doc = copy.deepcopy(V1_DOCUMENT)
        doc["version"] = 3
        doc["items"][0]["sessions"] = [{"startedAt": 1, "durationSeconds": 60}]
        doc["items"][0]["skipCount"] = 2.0
        doc["items"][1]["sourceKind"] = "soundcloud"

        data = migrate(doc)
        self.assertEqual(data["items"][0]["sessions"], [{"startedAt": 1, "durationSeconds": 60}])
        self.assertEqual(data["items"][0]["skipCount"], 2.0)
        self.assertEqual(data["items"][0]["completionCount"], 0)
        self.assertEqual(data["items"][1]["sourceKind"], "soundcloud")
        # v2 step does not run from v3
        self.assertNotIn("notesCache", data)

    def test_missing_version_treated_as_v1(self):
        doc = copy.deepcopy(V1_DOCUMENT)
        del doc["version"]
        data = migrate(doc)
        self.assertEqual(data["version"], CURRENT_VERSION)
        self.assertIn("notesCache", data)

    def test_current_version_untouched(self):
        doc = {"items": [], "version": CURRENT_VERSION}
        self.assertEqual(migrate(copy.deepcopy(doc)), doc)


class TestMigrationOnLoad(unittest.TestCase):
    def setUp(self):
        settings.PERSIST_ENABLED = True
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "radio.json")
        with open(self.path, "w") as f:
            json.dump(V1_DOCUMENT, f)

    def tearDown(self):
        self.tmp.cleanup()

    def test_load_migrates_and_persists(self):
        store = CollectionStore(self.path)
        items = store.snapshot().items

        self.assertEqual(len(items), 2)
        for item in items:
            self.assertEqual(item.sessions, [])
            self.assertEqual(item.skip_count, 0)
            self.assertEqual(item.completion_count, 0)
            self.assertEqual(item.source_kind, SourceKind.YOUTUBE)
        self.assertEqual(store.get_notes("jfKfPfyJRdk"), "Recorded in a bedroom studio.")
        self.assertEqual(store.get_volume(), 0.4)

        with open(self.path) as f:
            persisted = json.load(f)
        self.assertEqual(persisted["version"], CURRENT_VERSION)
        self.assertEqual(persisted["items"][1]["sourceKind"], "youtube")

    def test_v1_import_migrates(self):
        store = CollectionStore(seed_on_first_run=False)
        self.assertTrue(store.import_snapshot(json.dumps(V1_DOCUMENT)))
        snapshot = store.snapshot()
        self.assertEqual(snapshot.version, CURRENT_VERSION)
        self.assertEqual([i.source_id for i in snapshot.items], ["jfKfPfyJRdk", "w6H_OPzo9Gk"])
        self.assertEqual(len(snapshot.notes_cache), 1)

if __name__ == '__main__':
    unittest.main()
