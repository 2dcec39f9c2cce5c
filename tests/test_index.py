import threading
import unittest
from datetime import datetime, timezone

from fileshare.index import FileRecord, MetadataIndex


def make_record(file_id: str = "a" * 32, name: str = "report.pdf") -> FileRecord:
    return FileRecord(
        id=file_id,
        original_name=name,
        size=1024,
        upload_time=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        media_type="application/pdf",
    )


class MetadataIndexTests(unittest.TestCase):
    def setUp(self):
        self.index = MetadataIndex()

    def test_put_then_get(self):
        record = make_record()
        self.index.put(record)
        self.assertIs(self.index.get(record.id), record)
        self.assertIn(record.id, self.index)
        self.assertEqual(len(self.index), 1)

    def test_get_missing_returns_none(self):
        self.assertIsNone(self.index.get("b" * 32))

    def test_identifiers_are_never_reused(self):
        self.index.put(make_record())
        with self.assertRaises(KeyError):
            self.index.put(make_record(name="other.pdf"))
        self.assertEqual(self.index.get("a" * 32).original_name, "report.pdf")

    def test_fresh_indexes_are_isolated(self):
        self.index.put(make_record())
        self.assertEqual(len(MetadataIndex()), 0)

    def test_concurrent_puts_and_gets(self):
        ids = [f"{n:032x}" for n in range(400)]
        missing = []

        def writer(chunk):
            for file_id in chunk:
                self.index.put(make_record(file_id))

        def reader():
            for file_id in ids:
                record = self.index.get(file_id)
                if record is not None and record.size != 1024:
                    missing.append(file_id)

        threads = [threading.Thread(target=writer, args=(ids[i::4],)) for i in range(4)]
        threads.append(threading.Thread(target=reader))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(missing, [])
        self.assertEqual(sorted(self.index.ids()), ids)


class FileRecordTests(unittest.TestCase):
    def test_to_dict_uses_wire_field_names(self):
        self.assertEqual(
            make_record().to_dict(),
            {
                "id": "a" * 32,
                "original_name": "report.pdf",
                "size": 1024,
                "upload_time": "2024-05-01T12:30:00Z",
                "mime_type": "application/pdf",
            },
        )


if __name__ == "__main__":
    unittest.main()
