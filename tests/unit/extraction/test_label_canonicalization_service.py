import pytest

from intelligence_engine.services.extraction.label_canonicalization_service import (
    CLIENT_LEVEL_CATEGORIES,
    LABEL_TO_CANONICAL,
    LabelCanonicalizationService,
    category_from_path,
    slugify_label,
)


@pytest.fixture
def service():
    return LabelCanonicalizationService()


class TestLabelCanonicalizationService:

    def test_exact_match(self, service):
        match = service.canonicalize("Loan Amount")
        assert match.path == "financials.loanAmount"
        assert match.is_canonical is True
        assert match.scope == "project"
        assert match.confidence == 0.95

    def test_exact_match_is_case_and_whitespace_insensitive(self, service):
        assert service.canonicalize("  LTV ").path == "financials.ltv"
        assert service.canonicalize("Company Number").path == "company.registrationNumber"

    def test_partial_match_label_contains_key(self, service):
        match = service.canonicalize("Senior Loan Facility")
        assert match.path == "financials.loanAmount"
        assert match.confidence == 0.8
        assert match.is_canonical is True

    def test_partial_match_key_contains_label(self, service):
        match = service.canonicalize("Gross Dev")
        assert match.path == "financials.gdv"
        assert match.confidence == 0.8

    def test_partial_match_takes_first_entry_in_table_order(self, service):
        # "profit" (financials) is declared before "development" (overview)
        assert service.canonicalize("Development Profit").path == "financials.profitMargin"
        assert service.canonicalize("Construction Start Date").path == "timeline.constructionStart"

    def test_client_level_mapping(self, service):
        match = service.canonicalize("Net Worth")
        assert match.path == "financial.netWorth"
        assert match.scope == "client"

    def test_fallback_slug(self, service):
        match = service.canonicalize("Planning Reference No.")
        assert match.path == "extracted.planning_reference_no"
        assert match.is_canonical is False
        assert match.scope == "context"
        assert match.confidence == 0.5
        assert match.category == "extracted"

    def test_fallback_slug_is_truncated(self, service):
        match = service.canonicalize("q" * 80)
        assert match.path == "extracted." + "q" * 50

    def test_canonicalization_is_idempotent(self, service):
        labels = ["GDV", "Senior Loan Facility", "Planning Reference No.", ""]
        for label in labels:
            first = service.canonicalize(label)
            second = service.canonicalize(label)
            assert (first.path, first.scope, first.confidence) == (second.path, second.scope, second.confidence)

    def test_empty_label_partially_matches_first_entry(self, service):
        for label in ("", "   ", None):
            match = service.canonicalize(label)
            assert match.path == "financials.gdv"
            assert match.is_canonical is True
            assert match.scope == "project"
            assert match.confidence == 0.8


class TestDetermineScope:

    def test_client_scope_is_always_client(self, service):
        assert service.determine_scope("client", True) == "client"
        assert service.determine_scope("client", False, "Appraisal") == "client"

    def test_project_scope_needs_project_context(self, service):
        assert service.determine_scope("project", True) == "project"
        assert service.determine_scope("project", False) == "client"

    def test_context_scope_uses_client_level_categories(self, service):
        assert service.determine_scope("context", True, "KYC Documents") == "client"
        assert service.determine_scope("context", True, "company bank statement") == "client"

    def test_context_scope_falls_back_to_project_context(self, service):
        assert service.determine_scope("context", True, "Valuation Report") == "project"
        assert service.determine_scope("context", True) == "project"
        assert service.determine_scope("context", False, "Valuation Report") == "client"


def test_table_preserves_declaration_order():
    labels = [label for label, _, _ in LABEL_TO_CANONICAL]
    assert labels[0] == "gdv"
    assert labels.index("loan amount") < labels.index("loan") < labels.index("facility")
    assert labels.index("profit") < labels.index("development")
    assert labels[-1] == "portfolio value"


def test_client_level_categories():
    assert "Track Record" in CLIENT_LEVEL_CATEGORIES
    assert len(CLIENT_LEVEL_CATEGORIES) == 9


def test_slugify_label():
    assert slugify_label("Weird   Label!!  #2", 50) == "weird_label_2"
    assert category_from_path("financials.gdv") == "financials"
