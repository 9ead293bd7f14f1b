"""
Collaborator contracts for the assistant orchestrator.

The orchestrator only depends on these abstract seams; the database- and
LLM-backed implementations live next to this module and can be swapped for
remote services or test doubles.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from clinical_assistant.agent.models import DataIntent, KnowledgeAnswer, LookupResult


class CollaboratorError(Exception):
    """A collaborator could not produce a usable answer."""


class DataLookupError(CollaboratorError):
    """Structured data lookup failed."""


class KnowledgeGatewayError(CollaboratorError):
    """Knowledge gateway failed or returned a malformed response."""


class RecordNotFoundError(CollaboratorError):
    """Target clinical record does not exist."""


class DataLookup(ABC):
    """Answers structured questions about a patient or the clinician's agenda."""

    @abstractmethod
    async def lookup(self, data_intent: DataIntent, params: Optional[Dict[str, Any]] = None) -> LookupResult:
        """Resolve a data intent with request context (patient_id, visit_id)."""
        pass


class KnowledgeGateway(ABC):
    """Answers free-text clinical knowledge questions."""

    @abstractmethod
    async def query(self, text: str) -> KnowledgeAnswer:
        """Answer a question, optionally annotated with entities."""
        pass


class EMRWriter(ABC):
    """Writes into a clinical record's plan field."""

    @abstractmethod
    async def append_plan_snippet(self, record_id: str, snippet: str) -> str:
        """Append a snippet to the plan and return the updated plan text."""
        pass
