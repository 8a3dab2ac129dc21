"""
Tests for the batching planner

Largest-first packing, oversized documents alone, at most 3 documents per
batch, deterministic for a given input order.
"""

from generation.documents import SourceDocument
from generation.planner import MAX_BATCH_DOCUMENTS, plan_batches

MiB = 1024 * 1024


def doc(name: str, size: int) -> SourceDocument:
    return SourceDocument(name=name, path=f"/tmp/{name}", size_bytes=size)


def names(batches):
    return [[d.name for d in batch] for batch in batches]


class TestPlanBatches:

    def test_empty_input_gives_no_batches(self):
        assert plan_batches([], 5 * MiB) == []

    def test_single_document_gives_single_batch(self):
        batches = plan_batches([doc("a.pdf", 2 * MiB)], 20 * MiB)
        assert names(batches) == [["a.pdf"]]

    def test_single_huge_document_is_its_own_batch(self):
        batches = plan_batches([doc("huge.pdf", 100 * MiB)], 5 * MiB)
        assert names(batches) == [["huge.pdf"]]

    def test_oversized_documents_become_singletons(self):
        documents = [doc("a", 3 * MiB), doc("b", 4 * MiB), doc("c", 5 * MiB)]
        batches = plan_batches(documents, 5 * MiB)
        assert names(batches) == [["c"], ["b"], ["a"]]

    def test_never_more_than_three_documents_per_batch(self):
        documents = [doc(f"d{i}", 1000) for i in range(10)]
        batches = plan_batches(documents, 100 * MiB)
        assert all(len(batch) <= MAX_BATCH_DOCUMENTS for batch in batches)
        assert sum(len(batch) for batch in batches) == 10
        assert [len(batch) for batch in batches] == [3, 3, 3, 1]

    def test_batch_closes_when_size_limit_would_be_exceeded(self):
        documents = [doc("a", 400), doc("b", 400), doc("c", 300)]
        batches = plan_batches(documents, 1000)
        assert names(batches) == [["a", "b"], ["c"]]

    def test_sorted_largest_first(self):
        documents = [doc("small", 100), doc("large", 300), doc("medium", 200)]
        batches = plan_batches(documents, 10_000)
        assert names(batches) == [["large", "medium", "small"]]

    def test_equal_sizes_keep_input_order(self):
        documents = [doc("first", 100), doc("second", 100), doc("third", 100), doc("fourth", 100)]
        batches = plan_batches(documents, 10_000)
        assert names(batches) == [["first", "second", "third"], ["fourth"]]

    def test_deterministic(self):
        documents = [doc(f"d{i}", (i * 37) % 11 * 100 + 50) for i in range(12)]
        assert names(plan_batches(documents, 2000)) == names(plan_batches(documents, 2000))

    def test_three_one_mib_documents_share_a_batch(self):
        """Three 1 MiB documents under a 5 MiB / 4 threshold"""
        documents = [doc("a", MiB), doc("b", MiB), doc("c", MiB)]
        threshold = 5 * MiB // 4
        batches = plan_batches(documents, threshold)
        # Each exceeds half the threshold, so each stands alone
        assert names(batches) == [["a"], ["b"], ["c"]]

    def test_input_not_modified(self):
        documents = [doc("a", 1), doc("b", 3), doc("c", 2)]
        plan_batches(documents, 100)
        assert [d.name for d in documents] == ["a", "b", "c"]
