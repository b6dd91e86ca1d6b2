"""Tests for the stats aggregator."""

import pytest

from bucketview.exceptions import UpstreamError
from bucketview.stats import (
    KIND_EXTENSIONS,
    Aggregate,
    StatsAggregator,
    detect_kind,
    top_folders,
)


class TestDetectKind:
    """Tests for extension classification."""

    @pytest.mark.parametrize(
        ("key", "kind"),
        [
            ("a/1.png", "image"),
            ("PHOTO.JPEG", "image"),
            ("clip.mov", "video"),
            ("song.flac", "audio"),
            ("paper.pdf", "pdf"),
            ("README.md", "markdown"),
            ("notes.txt", "doc"),
            ("report.docx", "doc"),
            ("data.csv", "spreadsheet"),
            ("table.parquet", "spreadsheet"),
            ("deck.key", "presentation"),
            ("backup.tar.gz", "archive"),
            ("repo/.gitignore", "code"),
            ("main.py", "code"),
            ("config.yml", "code"),
            ("Makefile", "other"),
            ("image.png.bak", "other"),
            ("trailing.", "other"),
        ],
    )
    def test_detect_kind(self, key, kind) -> None:
        assert detect_kind(key) == kind

    def test_taxonomy_is_disjoint(self) -> None:
        """No extension belongs to two kinds."""
        seen: dict[str, str] = {}
        for kind, extensions in KIND_EXTENSIONS.items():
            for ext in extensions:
                assert ext not in seen, f"{ext} in {seen.get(ext)} and {kind}"
                seen[ext] = kind

    def test_taxonomy_kinds(self) -> None:
        assert set(KIND_EXTENSIONS) == {
            "image", "video", "audio", "pdf", "markdown", "doc",
            "spreadsheet", "presentation", "archive", "code",
        }


class TestTopFolders:
    """Tests for folder ordering and truncation."""

    def test_orders_by_bytes_then_name(self) -> None:
        folders = {
            "b/": Aggregate(1, 10),
            "a/": Aggregate(1, 10),
            "c/": Aggregate(5, 99),
        }
        assert list(top_folders(folders)) == ["c/", "a/", "b/"]

    def test_keeps_true_totals(self) -> None:
        """Retained folders report their full totals."""
        folders = {f"f{i:04d}/": Aggregate(i + 1, i) for i in range(1500)}

        top = top_folders(folders)

        assert len(top) == 1000
        assert next(iter(top)) == "f1499/"
        assert top["f1499/"] == Aggregate(1500, 1499)
        assert "f0499/" not in top


class TestStatsAggregator:
    """Tests for StatsAggregator.stats."""

    @pytest.mark.asyncio
    async def test_example_bucket(self, store, day) -> None:
        """Counts, sizes, kinds and folders of the example bucket."""
        result = await StatsAggregator(store).stats("")

        assert result.count == 3
        assert result.total_bytes == 160
        assert result.newest == day(3)
        assert result.oldest == day(1)
        assert result.by_type == {"image": Aggregate(2, 150), "doc": Aggregate(1, 10)}
        assert result.by_folder == {"a/": Aggregate(2, 150), "b/": Aggregate(1, 10)}
        assert list(result.by_folder) == ["a/", "b/"]

    @pytest.mark.asyncio
    async def test_to_dict(self, store) -> None:
        data = (await StatsAggregator(store).stats("")).to_dict()

        assert data["count"] == 3
        assert data["totalBytes"] == 160
        assert data["byType"] == {"image": {"count": 2, "bytes": 150}, "doc": {"count": 1, "bytes": 10}}
        assert data["byFolder"] == {"a/": {"count": 2, "bytes": 150}, "b/": {"count": 1, "bytes": 10}}
        assert data["newest"] == "2024-01-03T12:00:00Z"
        assert data["oldest"] == "2024-01-01T12:00:00Z"
        assert isinstance(data["tookMs"], int)

    @pytest.mark.asyncio
    async def test_empty_prefix_range(self, store) -> None:
        """Nothing under the prefix gives zeros and no timestamps."""
        result = await StatsAggregator(store).stats("missing/")

        assert result.count == 0
        assert result.by_type == {}
        data = result.to_dict()
        assert "newest" not in data
        assert "oldest" not in data

    @pytest.mark.asyncio
    async def test_skips_directory_markers(self, store) -> None:
        """Zero-byte folder markers are not counted."""
        store.add("a/", 0)
        store.add("c/", 0)

        result = await StatsAggregator(store).stats("")

        assert result.count == 3
        assert "c/" not in result.by_folder

    @pytest.mark.asyncio
    async def test_counts_non_empty_slash_keys(self, store) -> None:
        """A slash-terminated key with content is an ordinary object."""
        store.add("c/", 4)

        result = await StatsAggregator(store).stats("")

        assert result.count == 4
        assert result.by_type["other"] == Aggregate(1, 4)

    @pytest.mark.asyncio
    async def test_folders_relative_to_prefix(self, store_factory) -> None:
        """Only objects nested below the prefix are attributed to a folder."""
        store = store_factory()
        store.add("p/top.txt", 1)
        store.add("p/x/1.txt", 2)
        store.add("p/x/deep/2.txt", 3)
        store.add("p/y/3.txt", 4)

        result = await StatsAggregator(store).stats("p/")

        assert result.count == 4
        assert result.by_folder == {"x/": Aggregate(2, 5), "y/": Aggregate(1, 4)}

    @pytest.mark.asyncio
    async def test_first_seen_wins_ties(self, store_factory, day) -> None:
        """Equal timestamps keep the first one seen."""
        store = store_factory()
        store.add("a.txt", 1, last_modified=day(5))
        store.add("b.txt", 1, last_modified=day(5))

        result = await StatsAggregator(store).stats("")

        assert result.newest is result.oldest

    @pytest.mark.asyncio
    async def test_folder_limit(self, store_factory) -> None:
        """Only the configured number of folders is reported."""
        store = store_factory()
        for i in range(5):
            store.add(f"f{i}/x.bin", i + 1)

        result = await StatsAggregator(store, max_folders=2).stats("")

        assert list(result.by_folder) == ["f4/", "f3/"]
        assert result.count == 5

    @pytest.mark.asyncio
    async def test_idempotent(self, store) -> None:
        """Aggregating the same state twice gives the same result."""
        aggregator = StatsAggregator(store)

        first = (await aggregator.stats("")).to_dict()
        second = (await aggregator.stats("")).to_dict()
        first.pop("tookMs")
        second.pop("tookMs")

        assert first == second

    @pytest.mark.asyncio
    async def test_failure(self, store) -> None:
        """A failing page fails the aggregation."""
        store.fail_listing_after = 0

        with pytest.raises(UpstreamError):
            await StatsAggregator(store).stats("")
