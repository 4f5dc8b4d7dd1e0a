"""
Unit tests for health scoring, recommendations and storage statistics.
"""
from fractions import Fraction

import pytest

from imageguard.models.enums import HealthStatus, RecommendationPriority
from imageguard.services.health_service import (
    HealthReporter,
    health_score,
    health_status,
    round_half_up,
)


def _category_id(index):
    return f"{index:024x}"


@pytest.mark.parametrize(
    "value,expected",
    [
        (0, 0),
        (Fraction(1, 2), 1),
        (Fraction(5, 2), 3),
        (Fraction(12, 5), 2),
        (Fraction(2048, 1024), 2),
    ],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


@pytest.mark.parametrize(
    "issues,files,expected",
    [
        (0, 0, 100),
        (5, 0, 100),
        (0, 10, 100),
        (2, 10, 80),
        (1, 8, 87),
        (1, 3, 67),
        (20, 10, 0),
    ],
)
def test_health_score(issues, files, expected):
    assert health_score(issues, files) == expected


@pytest.mark.parametrize(
    "score,expected",
    [
        (100, HealthStatus.EXCELLENT),
        (90, HealthStatus.EXCELLENT),
        (89, HealthStatus.GOOD),
        (70, HealthStatus.GOOD),
        (69, HealthStatus.FAIR),
        (50, HealthStatus.FAIR),
        (49, HealthStatus.POOR),
        (0, HealthStatus.POOR),
    ],
)
def test_health_status_thresholds(score, expected):
    assert health_status(score) == expected


class TestHealthReporter:

    def test_two_orphans_in_ten_files(self, file_store, record_index, write_image, category_factory):
        for index in range(1, 9):
            category_id = _category_id(index)
            filename = write_image(f"cat_{category_id}_1700000000000_00000{index}.jpg", f"image-{index}".encode())
            category_factory(category_id=category_id, filename=filename)
        write_image("orphan1.jpg", b"orphan-1")
        write_image("orphan2.jpg", b"orphan-2")

        report = HealthReporter(file_store, record_index).generate_report()

        assert report.summary.total_files == 10
        assert report.summary.orphaned_files == 2
        assert report.summary.total_issues == 2
        assert report.health_score == 80
        assert report.status == HealthStatus.GOOD
        assert [rec.title for rec in report.recommendations] == ["Clean Up Orphaned Images"]
        assert report.recommendations[0].priority == RecommendationPriority.LOW
        assert report.details is None

    def test_duplicate_savings_and_maintenance(self, file_store, record_index, write_image):
        content = b"d" * 1024
        for name in ("a.jpg", "b.jpg", "c.jpg"):
            write_image(name, content)

        report = HealthReporter(file_store, record_index).generate_report()

        duplicates = next(rec for rec in report.recommendations if rec.title == "Remove Duplicate Images")
        assert duplicates.priority == RecommendationPriority.MEDIUM
        assert duplicates.estimated_savings == "2 KB"
        assert report.summary.wasted_bytes == 2048
        assert report.health_score == 0
        assert report.status == HealthStatus.POOR
        assert report.recommendations[-1].title == "System Maintenance Required"

    def test_incorrect_references_recommendation(self, file_store, record_index, write_image, category_factory):
        filename = write_image("pizza.jpg")
        category_factory(category_id=_category_id(1), filename=filename)
        category_factory(category_id=_category_id(2), filename="gone.jpg")

        report = HealthReporter(file_store, record_index).generate_report()

        incorrect = next(rec for rec in report.recommendations if rec.type == "data_integrity")
        assert incorrect.priority == RecommendationPriority.HIGH
        assert incorrect.description == "2 categories have incorrect image references"

    def test_empty_store_is_excellent(self, file_store, record_index, category_factory):
        category_factory(category_id=_category_id(1))

        report = HealthReporter(file_store, record_index).generate_report()

        assert report.health_score == 100
        assert report.status == HealthStatus.EXCELLENT
        assert report.recommendations == []

    def test_include_details(self, file_store, record_index, write_image):
        write_image("orphan.jpg")

        report = HealthReporter(file_store, record_index).generate_report(include_details=True)

        assert report.details.integrity.orphaned == ["orphan.jpg"]
        assert report.details.duplicates.groups == []
        assert report.details.storage.total_files == 1

    def test_status_is_compact(self, file_store, record_index, write_image):
        write_image("a.jpg", b"same")
        write_image("b.jpg", b"same")

        status = HealthReporter(file_store, record_index).status()

        assert status.health_score == 0
        assert status.status == HealthStatus.POOR
        assert len(status.recommendations) <= 5

    def test_storage_statistics(self, file_store, record_index, write_image, category_factory):
        write_image("small.jpg", b"x" * 10)
        write_image("large.jpg", b"x" * 30)
        write_image("medium.jpg", b"x" * 20)
        category_factory(category_id=_category_id(1), filename="large.jpg")
        category_factory(category_id=_category_id(2))

        stats = HealthReporter(file_store, record_index).storage_statistics()

        assert stats.total_files == 3
        assert stats.total_size == 60
        assert stats.average_size == 20
        assert stats.largest_file.filename == "large.jpg"
        assert stats.smallest_file.filename == "small.jpg"
        assert [item.filename for item in stats.largest_files] == ["large.jpg", "medium.jpg", "small.jpg"]
        assert stats.total_categories == 2
        assert stats.categories_with_images == 1
        assert stats.storage_efficiency == 50

    def test_storage_statistics_empty(self, file_store, record_index):
        stats = HealthReporter(file_store, record_index).storage_statistics()

        assert stats.total_files == 0
        assert stats.average_size == 0
        assert stats.largest_file is None
        assert stats.storage_efficiency == 0
