"""
Unit tests for IntegrityChecker findings and migration analysis.
"""
from imageguard.models.enums import FindingType
from imageguard.services.integrity_checker import IntegrityChecker

CATEGORY_ID = "507f1f77bcf86cd799439011"
OTHER_CATEGORY_ID = "507f1f77bcf86cd799439012"


def _unique(category_id=CATEGORY_ID, timestamp=1700000000000, nonce="123456"):
    return f"cat_{category_id}_{timestamp}_{nonce}.jpg"


def _checker(file_store, record_index, missing_reference_is_issue=False):
    return IntegrityChecker(file_store, record_index, missing_reference_is_issue=missing_reference_is_issue)


def test_detects_orphaned_file(file_store, record_index, write_image, category_factory):
    write_image("A.jpg")
    write_image("B.jpg")
    category_factory(filename="A.jpg")

    result = _checker(file_store, record_index).check()

    assert result.orphaned == ["B.jpg"]
    assert result.total_files == 2


def test_detects_missing_file(file_store, record_index, category_factory):
    filename = _unique()
    category_factory(category_id=CATEGORY_ID, image_path=f"/images/{filename}")

    result = _checker(file_store, record_index).check()

    assert len(result.missing) == 1
    finding = result.missing[0]
    assert finding.type == FindingType.MISSING
    assert finding.category_id == CATEGORY_ID
    assert finding.filename == filename
    # missing short-circuits naming checks
    assert result.invalid_naming == []
    assert not result.is_healthy


def test_flags_legacy_name(file_store, record_index, write_image, category_factory):
    write_image("pizza_1700000000000.jpg")
    category_factory(category_id=CATEGORY_ID, filename="pizza_1700000000000.jpg")

    result = _checker(file_store, record_index).check()

    assert len(result.invalid_naming) == 1
    finding = result.invalid_naming[0]
    assert finding.type == FindingType.NON_UNIQUE_FORMAT
    assert finding.legacy is True


def test_flags_non_unique_name_that_is_not_legacy(file_store, record_index, write_image, category_factory):
    write_image("pizza.jpg")
    category_factory(category_id=CATEGORY_ID, filename="pizza.jpg")

    finding = _checker(file_store, record_index).check().invalid_naming[0]

    assert finding.type == FindingType.NON_UNIQUE_FORMAT
    assert finding.legacy is False


def test_flags_id_mismatch(file_store, record_index, write_image, category_factory):
    filename = write_image(_unique(category_id=OTHER_CATEGORY_ID))
    category_factory(category_id=CATEGORY_ID, filename=filename)

    result = _checker(file_store, record_index).check()

    assert len(result.invalid_naming) == 1
    finding = result.invalid_naming[0]
    assert finding.type == FindingType.ID_MISMATCH
    assert finding.extracted_id == OTHER_CATEGORY_ID


def test_category_without_image_is_informational(file_store, record_index, category_factory):
    category_factory(category_id=CATEGORY_ID)

    result = _checker(file_store, record_index).check()

    assert len(result.missing_references) == 1
    assert result.missing_references[0].type == FindingType.MISSING_REFERENCE
    assert result.total_issues == 0
    assert result.is_healthy


def test_category_without_image_counts_when_configured(file_store, record_index, category_factory):
    category_factory(category_id=CATEGORY_ID)

    result = _checker(file_store, record_index, missing_reference_is_issue=True).check()

    assert result.total_issues == 1
    assert not result.is_healthy


def test_consistent_state_is_healthy(file_store, record_index, write_image, category_factory):
    filename = write_image(_unique())
    category_factory(category_id=CATEGORY_ID, filename=filename)

    result = _checker(file_store, record_index).check()

    assert result.is_healthy
    assert result.findings() == []
    assert result.categories_with_images == 1


def test_analyze_counts(file_store, record_index, write_image, category_factory):
    unique = write_image(_unique())
    write_image("legacy_1700000000000.jpg")
    write_image("orphan.jpg")
    category_factory(category_id=CATEGORY_ID, filename=unique)
    category_factory(category_id=OTHER_CATEGORY_ID, filename="legacy_1700000000000.jpg")
    category_factory(category_id="507f1f77bcf86cd799439013", filename="gone.jpg")
    category_factory(category_id="507f1f77bcf86cd799439014")

    analysis = _checker(file_store, record_index).analyze()

    assert analysis.categories.total == 4
    assert analysis.categories.with_images == 3
    assert analysis.categories.already_unique == 1
    assert analysis.categories.needs_migration == 1
    assert analysis.categories.missing_files == 1
    assert analysis.files.total == 3
    assert analysis.files.unique_format == 1
    assert analysis.files.legacy_format == 2
    assert analysis.files.referenced == 2
    assert analysis.files.orphaned == 1
    issue_types = sorted(issue.type.value for issue in analysis.issues)
    assert issue_types == ["missing", "missing_reference", "non_unique_format", "orphaned"]
