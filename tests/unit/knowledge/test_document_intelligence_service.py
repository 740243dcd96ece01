"""Unit tests for DocumentIntelligenceService."""

from uuid import uuid4

import pytest

from intelligence_engine.core.exceptions import DocumentNotFoundError, ValidationError
from intelligence_engine.database.models import KnowledgeStatus
from intelligence_engine.services.knowledge.document_intelligence_service import DocumentIntelligenceService
from intelligence_engine.services.knowledge.knowledge_reconciliation_service import (
    KnowledgeReconciliationService,
)


@pytest.fixture
def service(fake_session, knowledge_repository, document_repository, lock_registry):
    reconciler = KnowledgeReconciliationService(
        fake_session,
        knowledge_repository=knowledge_repository,
        document_repository=document_repository,
        locks=lock_registry,
    )
    return DocumentIntelligenceService(
        fake_session,
        reconciler=reconciler,
        document_repository=document_repository,
    )


ANALYSIS = {
    "keyAmounts": ["Loan Amount: £2,500,000", "LTV: 65%", "Planning Fee: £5,000"],
    "keyDates": ["Practical Completion: March 2026"],
    "entities": {"companies": ["Acme Developments Ltd"], "locations": ["12 High Street, Leeds"]},
}


@pytest.mark.asyncio
async def test_process_project_document(service, knowledge_repository, document_repository, client_id, project_id):
    document = document_repository.put(
        client_id=client_id, project_id=project_id, document_name="appraisal.pdf", category="Appraisal"
    )

    result = await service.process_document(document.id, ANALYSIS)

    assert len(result.fields) == 6
    assert result.reconciliation.added == 6
    assert document.added_to_intelligence is True

    owners = {item.field_path: (item.client_id, item.project_id) for item in knowledge_repository.items}
    assert owners["financials.loanAmount"] == (None, project_id)
    assert owners["extracted.planning_fee"] == (None, project_id)
    assert owners["location.siteAddress"] == (None, project_id)
    assert owners["company.name"] == (client_id, None)

    summary = result.to_dict()
    assert summary["document_id"] == str(document.id)
    assert summary["added"] == 6
    assert summary["fields"][0]["field_path"] == "financials.loanAmount"


@pytest.mark.asyncio
async def test_client_document_keeps_everything_on_client(
    service, knowledge_repository, document_repository, client_id
):
    document = document_repository.put(client_id=client_id, document_name="kyc.pdf", category="KYC")

    result = await service.process_document(document.id, ANALYSIS)

    # no project context, so the location entity is dropped
    assert "location.siteAddress" not in {extracted.field_path for extracted in result.fields}
    assert all(item.client_id == client_id for item in knowledge_repository.items)
    assert all(item.project_id is None for item in knowledge_repository.items)


@pytest.mark.asyncio
async def test_reprocessing_is_idempotent(service, knowledge_repository, document_repository, client_id, project_id):
    document = document_repository.put(client_id=client_id, project_id=project_id, document_name="a.pdf")

    await service.process_document(document.id, ANALYSIS)
    result = await service.process_document(document.id, ANALYSIS)

    assert result.reconciliation.added == 0
    assert result.reconciliation.updated == len(result.fields)
    assert all(item.status == KnowledgeStatus.ACTIVE for item in knowledge_repository.items)
    assert len(knowledge_repository.items) == len(result.fields)


@pytest.mark.asyncio
async def test_missing_document_raises(service):
    with pytest.raises(DocumentNotFoundError):
        await service.process_document(uuid4(), ANALYSIS)


@pytest.mark.asyncio
async def test_invalid_payload_raises(service, document_repository, client_id):
    document = document_repository.put(client_id=client_id)

    with pytest.raises(ValidationError) as exc_info:
        await service.process_document(document.id, {"keyAmounts": "GDV: £12.5m"})

    assert exc_info.value.original_error is not None
