"""Tests for the error taxonomy and PipelineReport."""

from digitaldna.shared.errors import (
    BlobNotFoundError,
    DigitalDnaError,
    PipelineReport,
    RateLimitedError,
    StorageError,
)


class TestErrors:
    def test_codes(self):
        assert DigitalDnaError("x").code == "DIGITALDNA_ERROR"
        assert DigitalDnaError("x", code="CUSTOM").code == "CUSTOM"
        assert RateLimitedError("x").code == "LLM_RATE_LIMITED"

    def test_blob_not_found_is_storage_error(self):
        err = BlobNotFoundError("u/raw/a.txt")
        assert isinstance(err, StorageError)
        assert err.key == "u/raw/a.txt"
        assert "u/raw/a.txt" in err.message


class TestPipelineReport:
    def test_empty(self):
        report = PipelineReport(label="backlog")
        assert report.total == 0
        assert not report.has_failures
        assert report.summary() == "backlog: 0 succeeded, 0 skipped, 0 failed"

    def test_mixed_outcomes(self):
        report = PipelineReport(label="backlog")
        report.record_success("a.txt")
        report.record_skip("b.txt")
        report.record_failure("c.txt", RateLimitedError("slow down"))
        report.record_failure("d.txt", ValueError("bad"))

        assert report.total == 4
        assert report.has_failures
        assert [f.item for f in report.failures] == ["c.txt", "d.txt"]
        assert report.failures[0].code == "LLM_RATE_LIMITED"
        assert report.failures[1].code == "DIGITALDNA_ERROR"
        assert report.failures[1].error == "bad"
        assert report.summary() == "backlog: 1 succeeded, 1 skipped, 2 failed"
