import threading
import unittest

from fileshare.identifiers import FileIdGenerator, is_valid_file_id


class FileIdGeneratorTests(unittest.TestCase):
    def test_ids_are_32_lowercase_hex_characters(self):
        file_id = FileIdGenerator().generate("report.pdf")
        self.assertEqual(len(file_id), 32)
        self.assertEqual(file_id, file_id.lower())
        self.assertTrue(is_valid_file_id(file_id))

    def test_sequential_ids_are_distinct(self):
        generator = FileIdGenerator()
        ids = [generator.generate("same.txt") for _ in range(1000)]
        self.assertEqual(len(set(ids)), len(ids))

    def test_ids_distinct_when_clock_does_not_advance(self):
        generator = FileIdGenerator(clock=lambda: 1_700_000_000_000_000_000)
        first = generator.generate("same.txt")
        second = generator.generate("same.txt")
        self.assertNotEqual(first, second)

    def test_directory_component_does_not_change_id(self):
        first = FileIdGenerator(clock=lambda: 42).generate("a/b/c.txt")
        second = FileIdGenerator(clock=lambda: 42).generate("c.txt")
        self.assertEqual(first, second)

    def test_concurrent_generation_is_unique(self):
        generator = FileIdGenerator()
        results = []
        lock = threading.Lock()

        def worker():
            local = [generator.generate("file.txt") for _ in range(200)]
            with lock:
                results.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(len(set(results)), 1600)


class IsValidFileIdTests(unittest.TestCase):
    def test_accepts_hex_of_either_case(self):
        self.assertTrue(is_valid_file_id("0" * 32))
        self.assertTrue(is_valid_file_id("ABCDEFabcdef0123456789ABCDEFabcd"))

    def test_rejects_other_shapes(self):
        for value in [
            "",
            "not-a-valid-id",
            "0" * 31,
            "0" * 33,
            "g" * 32,
            "../" + "0" * 29,
            "0" * 31 + "\n",
            None,
        ]:
            with self.subTest(value=value):
                self.assertFalse(is_valid_file_id(value))


if __name__ == "__main__":
    unittest.main()
